"""notify-service: asynchronous multi-channel notification dispatch."""

__version__ = "0.1.0"
