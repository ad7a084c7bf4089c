"""Outgoing mail.

`Mailer` is the port; `init_mailer(app)` binds the adapter named by
``MAIL_BACKEND`` onto ``app.extensions``. Production mail goes through
Resend; the console and memory backends are for development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

import resend
import structlog
from flask import current_app

logger = structlog.get_logger(__name__)

EXTENSION_KEY = "mailer"


class MailError(Exception):
    pass


@dataclass(frozen=True)
class OutgoingMail:
    to: str
    subject: str
    body: str
    sender: str


class Mailer(ABC):
    @abstractmethod
    def send(self, mail: OutgoingMail) -> str:
        """Deliver `mail`; return a message id or raise `MailError`."""
        ...


class ResendMailer(Mailer):
    """Sends through the Resend API; the sender must be on a verified domain."""

    def __init__(self, api_key: str | None):
        if not api_key:
            raise ValueError("RESEND_API_KEY is required when MAIL_BACKEND is 'resend'")
        # the SDK reads its key from module state
        resend.api_key = api_key

    def send(self, mail: OutgoingMail) -> str:
        params = {
            "from": mail.sender,
            "to": [mail.to],
            "subject": mail.subject,
            "text": mail.body,
        }
        try:
            sent = resend.Emails.send(params)
        except resend.exceptions.ResendError as e:
            raise MailError(str(e)) from e
        return sent["id"]


class ConsoleMailer(Mailer):
    """Development backend: writes the message to the log instead of sending it."""

    def send(self, mail: OutgoingMail) -> str:
        message_id = f"console-{uuid4().hex[:12]}"
        logger.info("mail_logged", message_id=message_id, to=mail.to, subject=mail.subject, body=mail.body)
        return message_id


class MemoryMailer(Mailer):
    """Records messages in memory for test assertions."""

    def __init__(self):
        self.outbox: list[OutgoingMail] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Email delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, mail: OutgoingMail) -> str:
        if not self.should_succeed:
            raise MailError(self.failure_reason)
        self.outbox.append(mail)
        return f"email-{uuid4().hex[:12]}"


def init_mailer(app) -> Mailer:
    backend = (app.config.get("MAIL_BACKEND") or "console").lower()
    if backend == "resend":
        mailer = ResendMailer(app.config.get("RESEND_API_KEY"))
    elif backend == "memory":
        mailer = MemoryMailer()
    elif backend == "console":
        mailer = ConsoleMailer()
    else:
        raise ValueError(f"Unknown MAIL_BACKEND: {backend}")
    app.extensions[EXTENSION_KEY] = mailer
    return mailer


def get_mailer() -> Mailer:
    return current_app.extensions[EXTENSION_KEY]
