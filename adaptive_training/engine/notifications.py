"""Outbound notification requests (fire-and-forget)."""

import logging

logger = logging.getLogger(__name__)


class Notifier:
    """Notification collaborator. The default implementation only logs."""

    def notify_adaptation_triggered(self, user_id: str) -> None:
        logger.info(f"Notify {user_id}: training plan adapted to manage fatigue")

    def notify_calibration_complete(self, user_id: str) -> None:
        logger.info(f"Notify {user_id}: calibration complete, plan personalised")


def send(notifier: Notifier, event: str, user_id: str) -> bool:
    """Deliver one notification after commit. Failures are logged, never raised."""
    try:
        getattr(notifier, f"notify_{event}")(user_id)
        return True
    except Exception as e:
        logger.error(f"Notification {event} for user {user_id} failed: {e}")
        return False
