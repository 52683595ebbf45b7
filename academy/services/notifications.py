"""
Best-effort user notifications.

Delivery lives outside this service; here a notification is only rendered and
handed to a Notifier. Failures are logged and never reach the caller, so a
purchase or confirmation can not fail because a notification did.
"""

import logging
from typing import Iterable, Optional, Protocol

from academy.core.config import settings

logger = logging.getLogger(__name__)

MESSAGES = {
    "TOPIC_ENROLLED": ("Enrollment Successful!", "You have successfully enrolled in {count} topic(s) of '{category_name}'."),
    "BUNDLE_PURCHASED": ("Bundle Unlocked!", "You now have access to all topics in '{category_name}'."),
    "PAYMENT_SUCCESS": ("Payment Successful!", "Your payment of {amount} {currency} has been processed successfully."),
    "PAYMENT_FAILED": ("Payment Failed", "Your payment could not be processed. Please try again or contact support."),
    "NEW_TOPIC_AVAILABLE": ("New Topic Available!", "'{topic_title}' was added to '{category_name}'."),
}


class Notifier(Protocol):
    def send(self, user_id: int, title: str, body: str, data: dict) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records the notification in the application log."""

    def send(self, user_id: int, title: str, body: str, data: dict) -> None:
        logger.info("Notification for user %s: %s - %s", user_id, title, body)


def get_notifier() -> Notifier:
    return LoggingNotifier()


def render(event: str, variables: dict) -> tuple[str, str]:
    title, body = MESSAGES[event]
    return title, body.format(**variables)


def notify_users(notifier: Optional[Notifier], user_ids: Iterable[int], event: str, variables: dict) -> int:
    """
    Send one notification per user. Returns how many were handed off.

    Meant to run as a background task after the response is sent.
    """
    if notifier is None or not settings.notifications_enabled:
        return 0

    sent = 0
    for user_id in user_ids:
        try:
            title, body = render(event, variables)
            notifier.send(user_id, title, body, {"type": event, **variables})
            sent += 1
        except Exception:
            logger.exception("Notification %s for user %s failed", event, user_id)
    return sent
