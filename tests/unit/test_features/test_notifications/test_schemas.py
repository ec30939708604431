"""Tests for notification request and query schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from notify_service.features.notifications.models import NotificationPriority, NotificationStatus
from notify_service.features.notifications.schemas import (
    NotificationFilter,
    NotificationRead,
    NotificationRequest,
)


@pytest.mark.unit
class TestNotificationRequest:
    """Tests for NotificationRequest validation."""

    def test_defaults(self):
        request = NotificationRequest(type="email", recipient="a@example.com", message="hi")

        assert request.priority is NotificationPriority.NORMAL
        assert request.metadata == {}
        assert request.id is None

    def test_whitespace_is_stripped(self):
        request = NotificationRequest(type=" sms ", recipient=" +15551234567 ", message=" hi ")

        assert request.type == "sms"
        assert request.recipient == "+15551234567"

    @pytest.mark.parametrize("field", ["type", "recipient", "message"])
    def test_required_fields_reject_empty(self, field):
        payload = {"type": "email", "recipient": "a@example.com", "message": "hi", field: ""}

        with pytest.raises(ValidationError):
            NotificationRequest(**payload)

    def test_none_metadata_becomes_empty(self):
        request = NotificationRequest(type="email", recipient="a@example.com", message="hi", metadata=None)
        assert request.metadata == {}

    def test_unknown_keys_are_ignored(self):
        request = NotificationRequest.model_validate(
            {"type": "email", "recipient": "a@example.com", "message": "hi", "channel": "x"}
        )
        assert not hasattr(request, "channel")


@pytest.mark.unit
class TestNotificationRead:
    """Tests for NotificationRead."""

    def test_from_record_maps_meta_to_metadata(self, make_notification):
        record = make_notification(meta={"subject": "S"})

        read = NotificationRead.model_validate(record)

        assert read.metadata == {"subject": "S"}
        assert "metadata" in read.model_dump()


@pytest.mark.unit
class TestNotificationFilter:
    """Tests for NotificationFilter bounds."""

    def test_defaults(self):
        filters = NotificationFilter()
        assert (filters.limit, filters.offset) == (50, 0)

    def test_status_from_string(self):
        assert NotificationFilter(status="failed").status is NotificationStatus.FAILED

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 1001}, {"offset": -1}, {"status": "lost"}])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            NotificationFilter(**kwargs)
