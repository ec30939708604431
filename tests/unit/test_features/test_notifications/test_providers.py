"""Tests for the delivery providers.

SMTP is replaced by patching ``aiosmtplib.SMTP``; HTTP providers get an
``httpx.AsyncClient`` on a ``MockTransport``.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import aiosmtplib
import httpx
import pytest

from notify_service.core.settings import EmailSettings, PushSettings, SmsSettings, WebhookSettings
from notify_service.features.notifications.providers import (
    DeliveryResult,
    EmailProvider,
    PushProvider,
    SmsProvider,
    WebhookProvider,
)
from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.providers.base import BaseProvider, ConnectionResult
from notify_service.features.notifications.providers.sms import calculate_segments, is_valid_phone_number
from notify_service.features.notifications.providers.webhook import generate_signature


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def smtp_client() -> MagicMock:
    """SMTP connection mock usable as an async context manager."""
    smtp = MagicMock()
    smtp.__aenter__.return_value = smtp
    smtp.login = AsyncMock()
    smtp.send_message = AsyncMock(return_value=({}, "250 2.0.0 OK queued"))
    smtp.connect = AsyncMock()
    smtp.quit = AsyncMock()
    return smtp


# ============================================================================
# DeliveryResult
# ============================================================================


@pytest.mark.unit
class TestDeliveryResult:
    """Tests for the DeliveryResult value object."""

    def test_failure_without_error_gets_default(self):
        result = DeliveryResult(success=False, provider="sms")
        assert result.error == "Unknown error"

    def test_to_dict_is_json_serializable(self):
        result = DeliveryResult.success_result("email", message_id="m1", details={"host": "smtp"})

        data = json.loads(json.dumps(result.to_dict()))

        assert data["success"] is True
        assert data["message_id"] == "m1"
        assert data["details"] == {"host": "smtp"}
        assert data["timestamp"]


class _DictReturningProvider(BaseProvider):
    channel = NotificationType.EMAIL

    async def _do_send(self, notification):
        return {"ok": True}

    async def _do_test_connection(self):
        return ConnectionResult(success=True, provider="email")


@pytest.mark.unit
class TestBaseProvider:
    """Tests for the shared send wrapper."""

    @pytest.mark.asyncio
    async def test_non_result_return_becomes_failure(self, make_notification):
        """A subclass returning the wrong type yields a failed result instead of raising."""
        result = await _DictReturningProvider().send(make_notification())

        assert isinstance(result, DeliveryResult)
        assert result.success is False
        assert result.error == "Invalid provider result: dict"
        assert result.duration_ms is not None


# ============================================================================
# Email
# ============================================================================


@pytest.mark.unit
class TestEmailProvider:
    """Tests for EmailProvider."""

    @pytest.fixture
    def provider(self) -> EmailProvider:
        settings = EmailSettings(
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_username="mailer",
            smtp_password="hunter2",
            from_address="noreply@example.com",
        )
        return EmailProvider(settings, app_name="Acme")

    def test_subject_from_metadata_or_generated(self, provider, make_notification):
        assert provider.build_subject(make_notification(meta={"subject": "Welcome"})) == "Welcome"
        assert provider.build_subject(make_notification()) == "Notification from Acme"
        assert provider.build_subject(make_notification(priority="high")) == "[URGENT] Notification from Acme"

    def test_html_escapes_message_and_metadata(self, provider, make_notification):
        """User content never reaches the HTML unescaped."""
        notification = make_notification(
            message="<script>alert(1)</script>",
            meta={"title": "<b>Hi</b>"},
        )

        html = provider.render_html(notification)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&lt;b&gt;Hi&lt;/b&gt;" in html
        assert notification.id in html

    def test_html_includes_button_when_configured(self, provider, make_notification):
        html = provider.render_html(
            make_notification(meta={"buttonText": "Open", "buttonUrl": "https://example.com/x"})
        )
        assert 'href="https://example.com/x"' in html
        assert ">Open</a>" in html

    def test_build_message_headers_and_parts(self, provider, make_notification):
        """High priority sets X-Priority; bodies are plain and HTML alternatives."""
        message = provider.build_message(make_notification(priority="high", recipient="to@example.com"))

        assert message["From"] == "noreply@example.com"
        assert message["To"] == "to@example.com"
        assert message["X-Priority"] == "1"
        alternative = message.get_payload()[0]
        assert [part.get_content_type() for part in alternative.get_payload()] == ["text/plain", "text/html"]

    def test_build_message_with_attachment(self, provider, make_notification):
        notification = make_notification(
            meta={
                "attachments": [
                    {"filename": "report.csv", "content": "YSxiCjEsMg==", "encoding": "base64", "contentType": "text/csv"}
                ]
            }
        )

        message = provider.build_message(notification)

        attachment = message.get_payload()[1]
        assert attachment.get_filename() == "report.csv"
        assert attachment.get_content_type() == "text/csv"
        assert attachment.get_payload(decode=True) == b"a,b\n1,2"

    @pytest.mark.asyncio
    async def test_send_success(self, provider, make_notification, smtp_client):
        """Login and send happen inside one connection; message id is returned."""
        with patch("aiosmtplib.SMTP", return_value=smtp_client) as smtp_cls:
            result = await provider.send(make_notification())

        assert result.success is True
        assert result.provider == "email"
        assert result.message_id.startswith("<")
        assert result.duration_ms is not None
        smtp_client.login.assert_awaited_once_with("mailer", "hunter2")
        smtp_client.send_message.assert_awaited_once()
        assert smtp_cls.call_args.kwargs["start_tls"] is True
        assert smtp_cls.call_args.kwargs["use_tls"] is False

    @pytest.mark.asyncio
    async def test_send_authentication_failure(self, provider, make_notification, smtp_client):
        smtp_client.login.side_effect = aiosmtplib.SMTPAuthenticationError(535, "bad credentials")

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            result = await provider.send(make_notification())

        assert result.success is False
        assert result.error.startswith("SMTP authentication failed")

    @pytest.mark.asyncio
    async def test_send_rejected_recipient(self, provider, make_notification, smtp_client):
        smtp_client.send_message.return_value = ({"user@example.com": (550, "no such user")}, "OK")

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            result = await provider.send(make_notification())

        assert result.success is False
        assert "user@example.com" in result.error

    @pytest.mark.asyncio
    async def test_invalid_attachment_is_reported_not_raised(self, provider, make_notification):
        """Errors building the message become a failed result."""
        result = await provider.send(make_notification(meta={"attachments": [{"filename": "x"}]}))

        assert result.success is False
        assert "Attachment requires" in result.error

    @pytest.mark.asyncio
    async def test_connection_test(self, provider, smtp_client):
        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            result = await provider.test_connection()

        assert result.success is True
        smtp_client.connect.assert_awaited_once()
        smtp_client.quit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_test_failure(self, provider, smtp_client):
        smtp_client.connect.side_effect = aiosmtplib.SMTPConnectError("refused")

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            result = await provider.test_connection()

        assert result.success is False
        assert "refused" in result.error

    def test_implicit_tls_on_port_465(self):
        provider = EmailProvider(EmailSettings(smtp_port=465))

        with patch("aiosmtplib.SMTP") as smtp_cls:
            provider._smtp_client()

        assert smtp_cls.call_args.kwargs["use_tls"] is True
        assert smtp_cls.call_args.kwargs["start_tls"] is False


# ============================================================================
# SMS
# ============================================================================


@pytest.mark.unit
class TestSmsHelpers:
    """Tests for SMS phone validation and segment counting."""

    @pytest.mark.parametrize(
        ("number", "valid"),
        [
            ("+15551234567", True),
            ("+442071838750", True),
            ("15551234567", False),
            ("+0123456", False),
            ("+1555-123-4567", False),
        ],
    )
    def test_is_valid_phone_number(self, number, valid):
        assert is_valid_phone_number(number) is valid

    def test_calculate_segments(self):
        assert calculate_segments("a" * 160) == 1
        assert calculate_segments("a" * 161) == 2
        assert calculate_segments("a" * 306) == 2
        assert calculate_segments("a" * 307) == 3


@pytest.mark.unit
class TestSmsProvider:
    """Tests for SmsProvider."""

    @pytest.fixture
    def settings(self) -> SmsSettings:
        return SmsSettings(
            twilio_account_sid="AC123",
            twilio_auth_token="secret-token",
            from_number="+15550000000",
            api_base_url="https://twilio.test/2010-04-01",
        )

    def test_format_message(self, settings, make_notification):
        provider = SmsProvider(settings, app_name="Acme")

        assert provider.format_message(make_notification(message="hi")) == "hi\n\n- Acme"
        assert provider.format_message(make_notification(message="hi", priority="high")).startswith("🚨 URGENT: hi")
        assert provider.format_message(make_notification(message="hi", meta={"includeSignature": False})) == "hi"

    def test_format_message_truncates(self, settings, make_notification):
        provider = SmsProvider(settings)

        body = provider.format_message(make_notification(message="x" * 2000))

        assert len(body) == 1600
        assert body.endswith("...")

    @pytest.mark.asyncio
    async def test_send_posts_form_with_basic_auth(self, settings, make_notification):
        captured: dict[str, httpx.Request] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(201, json={"sid": "SM1", "status": "queued", "to": "+15551234567"})

        provider = SmsProvider(settings, app_name="Acme", client=_mock_client(handler))
        result = await provider.send(make_notification(type="sms", recipient="+15551234567", message="ping"))

        assert result.success is True
        assert result.message_id == "SM1"
        assert result.details["segments"] == 1
        request = captured["request"]
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert request.headers["Authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form["To"] == ["+15551234567"]
        assert form["From"] == ["+15550000000"]
        assert form["Body"] == ["ping\n\n- Acme"]

    @pytest.mark.asyncio
    async def test_invalid_phone_fails_without_request(self, settings, make_notification):
        handler = MagicMock()
        provider = SmsProvider(settings, client=_mock_client(handler))

        result = await provider.send(make_notification(type="sms", recipient="not-a-number"))

        assert result.success is False
        assert result.error == "Invalid phone number format"
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, make_notification):
        provider = SmsProvider(SmsSettings(twilio_account_sid=None, twilio_auth_token=None))

        result = await provider.send(make_notification(type="sms", recipient="+15551234567"))

        assert result.success is False
        assert result.error == "Twilio credentials not configured"

    @pytest.mark.asyncio
    async def test_api_error_is_reported(self, settings, make_notification):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        provider = SmsProvider(settings, client=_mock_client(handler))
        result = await provider.send(make_notification(type="sms", recipient="+15551234567"))

        assert result.success is False
        assert result.error == "HTTP 400: Invalid 'To' Phone Number"

    @pytest.mark.asyncio
    async def test_delivery_status_lookup(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/Messages/SM1.json")
            return httpx.Response(200, json={"status": "delivered"})

        provider = SmsProvider(settings, client=_mock_client(handler))
        status = await provider.get_delivery_status("SM1")

        assert status.status == "delivered"

    @pytest.mark.asyncio
    async def test_delivery_status_lookup_error_is_unknown(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "not found"})

        provider = SmsProvider(settings, client=_mock_client(handler))
        status = await provider.get_delivery_status("SM404")

        assert status.status == "unknown"
        assert status.error


# ============================================================================
# Push
# ============================================================================


@pytest.mark.unit
class TestPushProvider:
    """Tests for PushProvider."""

    @pytest.fixture
    def settings(self) -> PushSettings:
        return PushSettings(fcm_server_key="fcm-key", fcm_url="https://fcm.test/send")

    @pytest.mark.asyncio
    async def test_send_success(self, settings, make_notification):
        captured: dict[str, httpx.Request] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(
                200,
                json={"multicast_id": 7, "success": 1, "failure": 0, "results": [{"message_id": "0:abc"}]},
            )

        provider = PushProvider(settings, client=_mock_client(handler))
        result = await provider.send(
            make_notification(type="push", recipient="device-token", meta={"title": "Hey", "data": {"k": "v"}})
        )

        assert result.success is True
        assert result.message_id == "0:abc"
        request = captured["request"]
        assert request.headers["Authorization"] == "key=fcm-key"
        body = json.loads(request.content)
        assert body == {
            "notification": {"title": "Hey", "body": "hello"},
            "to": "device-token",
            "data": {"k": "v"},
        }

    @pytest.mark.asyncio
    async def test_per_token_failure_in_200_response(self, settings, make_notification):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": 0, "failure": 1, "results": [{"error": "InvalidRegistration"}]})

        provider = PushProvider(settings, client=_mock_client(handler))
        result = await provider.send(make_notification(type="push", recipient="bad-token"))

        assert result.success is False
        assert result.error == "InvalidRegistration"

    @pytest.mark.asyncio
    async def test_missing_server_key(self, make_notification):
        provider = PushProvider(PushSettings(fcm_server_key=None))

        result = await provider.send(make_notification(type="push"))
        connection = await provider.test_connection()

        assert result.error == "FCM server key not configured"
        assert connection.success is False


# ============================================================================
# Webhook
# ============================================================================


@pytest.mark.unit
class TestWebhookProvider:
    """Tests for WebhookProvider."""

    @pytest.fixture
    def settings(self) -> WebhookSettings:
        return WebhookSettings(secret="shh", enable_signature=True, max_redirects=2)

    def test_generate_signature_is_hmac_sha256(self):
        signature = generate_signature("key", "2024-01-01T00:00:00Z", '{"a":1}')

        assert len(signature) == 64
        assert signature == generate_signature("key", "2024-01-01T00:00:00Z", '{"a":1}')
        assert signature != generate_signature("other", "2024-01-01T00:00:00Z", '{"a":1}')

    @pytest.mark.asyncio
    async def test_send_signs_payload(self, settings, make_notification):
        captured: dict[str, httpx.Request] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(202)

        provider = WebhookProvider(settings, app_name="acme", client=_mock_client(handler))
        notification = make_notification(
            type="webhook",
            recipient="https://hooks.example.com/in",
            meta={"event": "order.shipped", "data": {"order": 42}},
        )

        result = await provider.send(notification)

        assert result.success is True
        assert result.details["status_code"] == 202
        request = captured["request"]
        body = request.content.decode()
        timestamp = request.headers["X-Webhook-Timestamp"]
        assert request.headers["Authorization"] == "Bearer shh"
        assert request.headers["X-Webhook-Signature"] == generate_signature("shh", timestamp, body)
        payload = json.loads(body)
        assert payload["event"] == "order.shipped"
        assert payload["id"] == notification.id
        assert payload["data"] == {"order": 42}

    @pytest.mark.asyncio
    async def test_signature_headers_can_be_disabled(self, make_notification):
        captured: dict[str, httpx.Request] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200)

        provider = WebhookProvider(WebhookSettings(enable_signature=False), client=_mock_client(handler))
        await provider.send(make_notification(type="webhook", recipient="https://hooks.example.com/in"))

        assert "X-Webhook-Signature" not in captured["request"].headers

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self, settings, make_notification):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        provider = WebhookProvider(settings, client=_mock_client(handler))
        result = await provider.send(make_notification(type="webhook", recipient="https://hooks.example.com/in"))

        assert result.success is False
        assert result.error == "HTTP 503"
        assert result.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, settings, make_notification):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = WebhookProvider(settings, client=_mock_client(handler))
        result = await provider.send(make_notification(type="webhook", recipient="https://hooks.example.com/in"))

        assert result.success is False
        assert result.error.startswith("Request timeout")

    @pytest.mark.asyncio
    async def test_redirect_loop_is_failure(self, settings, make_notification):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "https://hooks.example.com/loop"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), max_redirects=2)
        provider = WebhookProvider(settings, client=client)
        result = await provider.send(make_notification(type="webhook", recipient="https://hooks.example.com/in"))

        assert result.success is False
        assert "redirects" in result.error

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, settings):
        client = _mock_client(lambda request: httpx.Response(200))
        provider = WebhookProvider(settings, client=client)

        await provider.aclose()

        assert client.is_closed is False
        await client.aclose()
