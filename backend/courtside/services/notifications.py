"""Post-commit event notifications.

The engine only emits events; delivering push/email content is somebody
else's job. Events go to an HTTP webhook when ``NOTIFICATION_WEBHOOK_URL`` is
set, otherwise the dispatcher runs in dry-run mode and just logs them.

Dispatch is best-effort: failures are logged and reported back to the caller
as warnings, never raised, because the sporting result is already committed.
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

MATCH_COMPLETED = "match_completed"
PLAYOFFS_CREATED = "playoffs_created"
COMPETITION_COMPLETED = "competition_completed"


@dataclass
class Event:
    type: str
    competition_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    emitted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class NotificationDispatcher(Protocol):
    def dispatch(self, event: Event) -> None:
        ...


class WebhookDispatcher:
    """
    POSTs each event as JSON to a webhook.

    Reads configuration from environment variables:
      - NOTIFICATION_WEBHOOK_URL
      - NOTIFICATION_TIMEOUT_SECONDS (default 5)
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        self.url = url if url is not None else os.getenv("NOTIFICATION_WEBHOOK_URL", "")
        self.timeout = timeout if timeout is not None else float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))
        self.dry_run = not self.url
        if self.dry_run:
            logger.info("Notification webhook not configured. Running in dry-run mode.")

    def dispatch(self, event: Event) -> None:
        if self.dry_run:
            logger.info(f"[DRY RUN] {event.type} for competition {event.competition_id}: {event.payload}")
            return
        response = requests.post(self.url, json=asdict(event), timeout=self.timeout)
        response.raise_for_status()
        logger.info(f"Notification {event.type} delivered for competition {event.competition_id}")


def dispatch_all(dispatcher: Optional[NotificationDispatcher], events: List[Event]) -> List[str]:
    """Fire every event; return human-readable warnings for those that failed."""
    warnings: List[str] = []
    if dispatcher is None:
        return warnings
    for event in events:
        try:
            dispatcher.dispatch(event)
        except Exception as e:
            logger.warning(f"Failed to dispatch {event.type} for competition {event.competition_id}: {e}")
            warnings.append(f"notification {event.type} failed: {e}")
    return warnings


# Singleton instance
_dispatcher: Optional[WebhookDispatcher] = None


def get_dispatcher() -> WebhookDispatcher:
    """Get or create the singleton WebhookDispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = WebhookDispatcher()
    return _dispatcher
