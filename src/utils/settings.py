"""
Runtime configuration read from the Lambda environment.

Defaults keep local runs working without any AWS resources: point
STORE_BACKEND at "memory" and the service runs against an in-process store.
"""

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class RuntimeSettings:
    """Settings consumed by handlers and services."""

    environment: str = "dev"
    aws_region: str = "eu-west-2"

    # Store
    store_backend: str = "dynamodb"
    buyers_table: str = "ticketing-buyers"
    events_table: str = "ticketing-events"
    batches_table: str = "ticketing-batches"
    tickets_table: str = "ticketing-tickets"

    # Issuance retry policy (transaction step only)
    issuance_max_attempts: int = 5
    issuance_backoff_seconds: float = 0.05
    issuance_backoff_cap_seconds: float = 1.0

    # Mail
    mail_backend: str = "ses"
    mail_sender: str = "no-reply@eventflow.local"
    mail_sender_name: str = "EventFlow"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    # Artifact
    qr_prefix: str = "EVENTFLOW"
    display_timezone: str = "America/Sao_Paulo"

    @classmethod
    def from_environment(cls) -> "RuntimeSettings":
        """Load settings from environment variables."""
        env = os.environ
        return cls(
            environment=env.get("ENVIRONMENT", "dev"),
            aws_region=env.get("AWS_REGION", "eu-west-2"),
            store_backend=env.get("STORE_BACKEND", "dynamodb").lower(),
            buyers_table=env.get("BUYERS_TABLE", cls.buyers_table),
            events_table=env.get("EVENTS_TABLE", cls.events_table),
            batches_table=env.get("BATCHES_TABLE", cls.batches_table),
            tickets_table=env.get("TICKETS_TABLE", cls.tickets_table),
            issuance_max_attempts=int(env.get("ISSUANCE_MAX_ATTEMPTS", cls.issuance_max_attempts)),
            issuance_backoff_seconds=float(
                env.get("ISSUANCE_BACKOFF_SECONDS", cls.issuance_backoff_seconds)
            ),
            issuance_backoff_cap_seconds=float(
                env.get("ISSUANCE_BACKOFF_CAP_SECONDS", cls.issuance_backoff_cap_seconds)
            ),
            mail_backend=env.get("MAIL_BACKEND", "ses").lower(),
            mail_sender=env.get("MAIL_SENDER") or env.get("SMTP_USER") or cls.mail_sender,
            mail_sender_name=env.get("MAIL_SENDER_NAME", cls.mail_sender_name),
            smtp_host=env.get("SMTP_HOST", cls.smtp_host),
            smtp_port=int(env.get("SMTP_PORT", cls.smtp_port)),
            smtp_user=env.get("SMTP_USER", ""),
            smtp_password=env.get("SMTP_PASS", ""),
            qr_prefix=env.get("QR_PREFIX", cls.qr_prefix),
            display_timezone=env.get("DISPLAY_TIMEZONE", cls.display_timezone),
        )
