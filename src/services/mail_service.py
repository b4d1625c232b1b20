"""
Mail collaborators.

SES (``send_raw_email``) is the default transport inside AWS; the SMTP
transport covers plain mailbox credentials such as a Gmail app password.
Both take the same MIME message and raise DeliveryFailedError on any
transport failure. No partial-send semantics: a call either hands the
message off or fails.
"""

from __future__ import annotations

import smtplib
from abc import ABC, abstractmethod
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.error_handling import DeliveryFailedError
from utils.logging_config import get_logger
from utils.settings import RuntimeSettings

logger = get_logger(__name__)


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    html_body: str,
    attachment: bytes,
    filename: str,
) -> MIMEMultipart:
    """multipart/mixed message with an HTML part and a PDF attachment."""
    message = MIMEMultipart("mixed")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = recipient
    message["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[-1].rstrip(">"))
    message.attach(MIMEText(html_body, "html", "utf-8"))

    part = MIMEApplication(attachment, _subtype="pdf")
    part.add_header("Content-Disposition", "attachment", filename=filename)
    message.attach(part)
    return message


class Mailer(ABC):
    """Send-message operation used by the fulfillment dispatcher."""

    def __init__(self, sender: str, sender_name: str = "EventFlow"):
        self.sender = sender
        self.sender_name = sender_name

    @property
    def from_header(self) -> str:
        return formataddr((self.sender_name, self.sender))

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        attachment: bytes,
        filename: str,
    ) -> str:
        """Hand the message to the transport and return its message id.

        Raises:
            DeliveryFailedError: The transport rejected or timed out.
        """
        ...


class SesMailer(Mailer):
    """Amazon SES transport."""

    def __init__(
        self,
        sender: str,
        sender_name: str = "EventFlow",
        region: Optional[str] = None,
        client: Any = None,
    ):
        super().__init__(sender, sender_name)
        self.client = client or boto3.client("ses", region_name=region)

    def send(self, recipient, subject, html_body, attachment, filename) -> str:
        message = build_message(self.from_header, recipient, subject, html_body, attachment, filename)
        try:
            resp = self.client.send_raw_email(
                Source=self.from_header,
                Destinations=[recipient],
                RawMessage={"Data": message.as_string()},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("SES send failed", extra={"error": str(exc)})
            raise DeliveryFailedError() from exc
        return resp.get("MessageId") or message["Message-ID"]


class SmtpMailer(Mailer):
    """SMTP + STARTTLS transport."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        sender: Optional[str] = None,
        sender_name: str = "EventFlow",
        timeout: float = 10.0,
    ):
        super().__init__(sender or user, sender_name)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def send(self, recipient, subject, html_body, attachment, filename) -> str:
        message = build_message(self.from_header, recipient, subject, html_body, attachment, filename)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP send failed", extra={"host": self.host, "error": str(exc)})
            raise DeliveryFailedError() from exc
        return message["Message-ID"]


def build_mailer(settings: RuntimeSettings) -> Mailer:
    """Pick the transport configured by MAIL_BACKEND."""
    if settings.mail_backend == "smtp":
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.mail_sender,
            sender_name=settings.mail_sender_name,
        )
    return SesMailer(
        sender=settings.mail_sender,
        sender_name=settings.mail_sender_name,
        region=settings.aws_region,
    )
