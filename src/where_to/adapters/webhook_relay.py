"""Webhook notification relay adapter."""

from dataclasses import dataclass

import httpx

from where_to.services.notifications import LifecycleEvent, NotificationRelay


@dataclass
class HttpxWebhookRelay(NotificationRelay):
    """Posts lifecycle events to a webhook (e.g. a push-notification function)."""

    url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, url: str) -> "HttpxWebhookRelay":
        """Create a relay with a managed httpx session."""
        return cls(url=url, http_client=httpx.AsyncClient())

    async def publish(self, event: LifecycleEvent) -> None:
        """POST the event payload as JSON."""
        response = await self.http_client.post(
            self.url, json=event.to_payload(), timeout=10
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
