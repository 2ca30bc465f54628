"""Lifecycle events emitted to the notification relay."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from where_to.domain.voting import Invitation, VotingSession

_logger = logging.getLogger(__name__)


class EventName(Enum):
    """Named session lifecycle events."""

    INVITATION_CREATED = "invitation_created"
    INVITATION_RESPONSE = "invitation_response"
    SESSION_CONCLUDED = "session_concluded"


@dataclass(frozen=True)
class LifecycleEvent:
    """A lifecycle event carrying the entity it concerns."""

    name: EventName
    entity: VotingSession | Invitation
    accepted: bool | None = None

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-serializable payload for delivery."""
        payload: dict[str, object] = {
            "event": self.name.value,
            "data": self.entity.to_document(),
        }
        if self.accepted is not None:
            payload["accepted"] = self.accepted
        return payload


class NotificationRelay(Protocol):
    """Delivers lifecycle events to interested parties."""

    async def publish(self, event: LifecycleEvent) -> None:
        """Hand an event off for delivery."""


@dataclass
class LoggingNotificationRelay(NotificationRelay):
    """Relay that only logs events, used when no webhook is configured."""

    async def publish(self, event: LifecycleEvent) -> None:
        """Log the event."""
        _logger.info("Lifecycle event %s: %s", event.name.value, event.to_payload())
