"""Delivery channel settings.

One settings class per channel. Each channel can be disabled
independently; a disabled channel is never registered and notifications
of that type fail at dispatch time.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """SMTP email channel configuration.

    Environment variables use EMAIL_ prefix.
    Example: EMAIL_SMTP_HOST=smtp.gmail.com, EMAIL_SMTP_PORT=587
    """

    enabled: bool = Field(default=True, description="Register the email provider")
    smtp_host: str = Field(default="localhost", description="SMTP server hostname")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP authentication username")
    smtp_password: SecretStr | None = Field(default=None, description="SMTP authentication password")
    use_tls: bool = Field(default=True, description="Use STARTTLS (ignored on port 465)")
    validate_certs: bool = Field(default=True, description="Verify the server TLS certificate")
    from_address: str = Field(
        default="notifications@example.com",
        description="Envelope and header From address",
    )
    timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0, description="SMTP timeout")

    @property
    def use_ssl(self) -> bool:
        """Implicit TLS is used on the SMTPS port."""
        return self.smtp_port == 465

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


class SmsSettings(BaseSettings):
    """Twilio SMS channel configuration.

    Environment variables use SMS_ prefix.
    Example: SMS_TWILIO_ACCOUNT_SID=AC..., SMS_FROM_NUMBER=+15551234567
    """

    enabled: bool = Field(default=True, description="Register the SMS provider")
    twilio_account_sid: str | None = Field(default=None, description="Twilio account SID")
    twilio_auth_token: SecretStr | None = Field(default=None, description="Twilio auth token")
    from_number: str = Field(default="+1234567890", description="Sender phone number (E.164)")
    api_base_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Twilio REST API base URL",
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0, description="HTTP timeout")

    @property
    def has_credentials(self) -> bool:
        """Whether both account SID and auth token are configured."""
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    model_config = SettingsConfigDict(
        env_prefix="SMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


class PushSettings(BaseSettings):
    """Firebase Cloud Messaging push channel configuration.

    Environment variables use PUSH_ prefix.
    Example: PUSH_FCM_SERVER_KEY=AAAA...
    """

    enabled: bool = Field(default=True, description="Register the push provider")
    fcm_server_key: SecretStr | None = Field(default=None, description="FCM server key")
    fcm_url: str = Field(
        default="https://fcm.googleapis.com/fcm/send",
        description="FCM HTTP send endpoint",
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0, description="HTTP timeout")

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


class WebhookSettings(BaseSettings):
    """Outbound webhook channel configuration.

    Environment variables use WEBHOOK_ prefix.
    Example: WEBHOOK_SECRET=s3cret, WEBHOOK_TIMEOUT_SECONDS=5
    """

    enabled: bool = Field(default=True, description="Register the webhook provider")
    secret: SecretStr = Field(
        default=SecretStr("webhook_secret_key"),
        description="Bearer token and HMAC signing secret",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Timeout for webhook HTTP requests (seconds)",
    )
    max_redirects: int = Field(default=5, ge=0, le=20, description="Maximum redirects to follow")
    enable_signature: bool = Field(
        default=True,
        description="Include HMAC signature headers in webhook requests",
    )
    probe_url: str = Field(
        default="https://httpbin.org/get",
        description="URL requested by the webhook connection test",
    )

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["EmailSettings", "PushSettings", "SmsSettings", "WebhookSettings"]
