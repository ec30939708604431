"""Core building blocks: settings, database, exceptions and service base."""
