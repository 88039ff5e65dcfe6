"""SMTP mail transport."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Protocol

from notifier.errors import TransmissionError
from notifier.notify.models import MailMessage
from notifier.shared.constants import SMTP_RETRIES, SMTP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Outbound channel for rendered messages."""

    async def send(self, message: MailMessage) -> None:
        """
        Transmit one message.

        Args:
            message: Message to send.

        Returns:
            None.

        Raises:
            TransmissionError: The message could not be sent.
        """


def build_mime_message(message: MailMessage, sender: str) -> MIMEMultipart:
    """
    Build the MIME representation of a message.

    Args:
        message: Message to send.
        sender: ``From`` address.

    Returns:
        Multipart alternative message with text and/or HTML parts.
    """
    mime = MIMEMultipart("alternative")
    mime["Subject"] = message.subject
    mime["From"] = sender
    mime["To"] = ", ".join(message.recipients)
    mime["Date"] = formatdate(localtime=False)
    mime["Message-ID"] = make_msgid()
    if message.text:
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
    if message.html:
        mime.attach(MIMEText(message.html, "html", "utf-8"))
    return mime


class SmtpTransport:
    """
    SMTP delivery client with retries.

    Args:
        host: SMTP server host.
        port: SMTP server port.
        sender: ``From`` address.
        secure: Use implicit TLS instead of STARTTLS.
        username: Login user.
        password: Login password.
        timeout_seconds: Connection timeout.
        retries: Retry attempts for failed sends.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        secure: bool = False,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: float = SMTP_TIMEOUT_SECONDS,
        retries: int = SMTP_RETRIES,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.secure = secure
        self.username = username
        self.password = password
        self.timeout_seconds = timeout_seconds
        self.retries = max(0, retries)

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
        connection = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        connection.ehlo()
        if connection.has_extn("starttls"):
            connection.starttls()
            connection.ehlo()
        return connection

    def send_sync(self, message: MailMessage) -> None:
        """
        Send a message, blocking until done.

        Args:
            message: Message to send.

        Returns:
            None.

        Raises:
            TransmissionError: Every attempt failed.
        """
        if not message.recipients:
            raise TransmissionError(f"No recipients for {message.subject!r}")
        mime = build_mime_message(message, self.sender)
        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                with self._connect() as connection:
                    if self.username:
                        connection.login(self.username, self.password or "")
                    connection.sendmail(
                        self.sender, list(message.recipients), mime.as_string()
                    )
                return
            except (smtplib.SMTPException, OSError) as error:
                last_error = error
                if attempt < self.retries:
                    time.sleep(2**attempt)
                    continue
                break
        raise TransmissionError(
            f"Sending to {', '.join(message.recipients)} failed: {last_error}"
        )

    async def send(self, message: MailMessage) -> None:
        logger.debug(
            "Send email to %s: %s", ", ".join(message.recipients), message.subject
        )
        await asyncio.to_thread(self.send_sync, message)
