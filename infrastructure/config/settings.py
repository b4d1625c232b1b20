"""
Environment-specific configuration settings for the CDK stack.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Deployment settings with small defaults for development."""

    # Environment
    environment: str = "dev"
    aws_region: str = "eu-west-2"

    # Browser origin allowed by the HTTP API CORS preflight
    frontend_url: str = "*"

    # Mail (SES identity must be verified in the account)
    mail_sender: str = "no-reply@eventflow.local"
    mail_sender_name: str = "EventFlow"

    # Lambda Configuration
    lambda_memory_mb: int = 512
    lambda_timeout_seconds: int = 30

    # Issuance retry policy
    issuance_max_attempts: int = 5

    # Display
    display_timezone: str = "America/Sao_Paulo"

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        common = dict(
            aws_region=os.environ.get("AWS_REGION", cls.aws_region),
            frontend_url=os.environ.get("FRONTEND_URL", cls.frontend_url),
            mail_sender=os.environ.get("MAIL_SENDER", cls.mail_sender),
            mail_sender_name=os.environ.get("MAIL_SENDER_NAME", cls.mail_sender_name),
            display_timezone=os.environ.get("DISPLAY_TIMEZONE", cls.display_timezone),
        )

        # Production overrides
        if env == "prod":
            return cls(
                environment="prod",
                lambda_memory_mb=1024,
                lambda_timeout_seconds=60,
                **common,
            )

        return cls(environment=env, **common)
