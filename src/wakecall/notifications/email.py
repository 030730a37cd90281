"""
Email notifications.

Delivery is behind ``EmailSender``; the default sender writes the message to
the structured log so development setups can read codes from the console.
"""

from dataclasses import dataclass
from typing import Protocol

from wakecall.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str


class EmailSender(Protocol):
    """Protocol for outbound email delivery."""

    async def send(self, message: EmailMessage) -> None: ...


class LogEmailSender:
    """Email sender that logs instead of delivering."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        self.sent.append(message)
        logger.info(
            "Email dispatched",
            extra={"to": message.to, "subject": message.subject, "body": message.text},
        )


def otp_email(to: str, code: str, expire_minutes: int) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject="Your wakecall verification code",
        text=(
            f"Your verification code is {code}.\n"
            f"It expires in {expire_minutes} minutes. "
            "If you did not request it, ignore this email."
        ),
    )


def welcome_email(to: str, name: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject="Your first wake-up call is scheduled",
        text=(
            f"Hi {name},\n\n"
            "Your wake-up call is set. We'll ring you at the time you picked, "
            "with a message built around your goals.\n\n"
            "Your first call is on us. Rise and shine!"
        ),
    )


_sender: EmailSender | None = None


def get_email_sender() -> EmailSender:
    global _sender
    if _sender is None:
        _sender = LogEmailSender()
    return _sender
