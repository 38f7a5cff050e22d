# investledger/services/notifications.py
"""
Post-commit notifications.

Ledger operations never send email themselves. They publish a
:class:`Notification` after their unit of work commits and a worker delivers
it. Delivery failures are logged and dropped; they never reach the caller and
never roll anything back.
"""

import logging
import queue
import smtplib
import threading
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Callable, Dict, Optional

from investledger.core.config import Settings, settings as default_settings
from investledger.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    template: str
    user_id: str
    context: Dict[str, Any] = field(default_factory=dict)


TEMPLATES = {
    "investment_confirmation": (
        "Your investment is active",
        "Hi {name},\n\nYour investment of ${amount} in {package_name} is active. "
        "Expected return: ${expected_return}. Matures on {end_date}.",
    ),
    "investment_cancelled": (
        "Your investment was cancelled",
        "Hi {name},\n\nYour investment of ${amount} was cancelled and refunded to your balance.",
    ),
    "deposit_confirmation": (
        "Deposit confirmed",
        "Hi {name},\n\nYour deposit of ${amount} has been credited to your account.",
    ),
    "withdrawal_request": (
        "Withdrawal request received",
        "Hi {name},\n\nWe received your withdrawal request of ${amount} "
        "(fee ${fees}). It is pending review.",
    ),
    "investment_completed": (
        "Your investment has matured",
        "Hi {name},\n\nYour investment in {package_name} has matured. "
        "${payout} has been paid to your balance.",
    ),
}


def render(notification: Notification, name: str):
    subject, body = TEMPLATES[notification.template]
    values = {"name": name, **notification.context}
    return subject, body.format(**values)


class NullEmailSender:
    """Used when SMTP is not configured."""

    def send(self, to_address: str, subject: str, body: str) -> None:
        logger.info(f"Email to {to_address} not sent (SMTP disabled): {subject}")


class SmtpEmailSender:
    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def send(self, to_address: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.config.EMAIL_FROM
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=10) as smtp:
            if self.config.SMTP_USE_TLS:
                smtp.starttls()
            if self.config.SMTP_USERNAME:
                smtp.login(self.config.SMTP_USERNAME, self.config.SMTP_PASSWORD or "")
            smtp.send_message(message)


def build_email_sender(config: Optional[Settings] = None):
    config = config or default_settings
    if config.SMTP_HOST:
        return SmtpEmailSender(config)
    return NullEmailSender()


class NotificationDispatcher:
    """Queue of notifications drained by a worker thread (or explicitly in tests)."""

    def __init__(self, sender, session_factory: Callable):
        self.sender = sender
        self.session_factory = session_factory
        self._queue: "queue.Queue[Notification]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def publish(self, notification: Notification) -> None:
        try:
            self._queue.put_nowait(notification)
        except Exception:
            logger.exception(f"Could not queue {notification.template} for user {notification.user_id}")

    def pending(self) -> int:
        return self._queue.qsize()

    def process_pending(self) -> int:
        """Deliver everything queued so far. Returns the number delivered."""
        delivered = 0
        while True:
            try:
                notification = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if self._deliver(notification):
                delivered += 1

    def _deliver(self, notification: Notification) -> bool:
        try:
            db = self.session_factory()
            try:
                user = db.query(User).filter(User.id == notification.user_id).first()
            finally:
                db.close()
            if user is None:
                logger.warning(f"Dropping {notification.template}: user {notification.user_id} not found")
                return False

            subject, body = render(notification, user.first_name or "Investor")
            self.sender.send(user.email, subject, body)
            logger.info(f"Sent {notification.template} to user {user.id}")
            return True
        except Exception as e:
            logger.error(f"Failed to send {notification.template} to user {notification.user_id}: {e}")
            return False

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="notification-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                notification = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._deliver(notification)
