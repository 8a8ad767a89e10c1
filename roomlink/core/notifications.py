"""
Outbound guest notifications.

Email transport is outside this service; ``LoggingNotifier`` records what
would be sent. ``send_safely`` is how services invoke a notifier: the call
happens after the write has committed and a failure is only logged.
"""

import logging
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def booking_cancelled(self, email: str, booking: Dict[str, Any]) -> None: ...

    def payment_confirmed(self, email: str, payment: Dict[str, Any]) -> None: ...

    def review_invitation(self, email: str, booking: Dict[str, Any], review_url: str) -> None: ...

    def complaint_updated(self, email: str, complaint: Dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Notifier that writes each message to the application log."""

    def _send(self, template: str, email: str, context: Dict[str, Any]) -> None:
        logger.info(
            f"Notification '{template}' queued for {email}",
            extra={"template": template, "recipient": email, "context": context},
        )

    def booking_cancelled(self, email: str, booking: Dict[str, Any]) -> None:
        self._send("booking_cancelled", email, booking)

    def payment_confirmed(self, email: str, payment: Dict[str, Any]) -> None:
        self._send("payment_confirmed", email, payment)

    def review_invitation(self, email: str, booking: Dict[str, Any], review_url: str) -> None:
        self._send("review_invitation", email, {**booking, "review_url": review_url})

    def complaint_updated(self, email: str, complaint: Dict[str, Any]) -> None:
        self._send("complaint_updated", email, complaint)


def send_safely(action: Callable[..., None], *args: Any, context: Optional[Dict[str, Any]] = None) -> bool:
    """Run a notifier call; report failure in the log and return False."""
    try:
        action(*args)
        return True
    except Exception:
        logger.error(
            f"Notification {getattr(action, '__name__', action)} failed",
            extra=context or {},
            exc_info=True,
        )
        return False
