"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import AsyncClient

from where_to.adapters.supabase_document_store import SupabaseDocumentStore
from where_to.adapters.webhook_relay import HttpxWebhookRelay
from where_to.adapters.yelp_client import HttpxYelpClient
from where_to.config import Settings
from where_to.services.cache import InMemoryCache
from where_to.services.notifications import (
    LoggingNotificationRelay,
    NotificationRelay,
)
from where_to.services.restaurants import RestaurantCatalogService
from where_to.services.store import DocumentStore
from where_to.services.users import UserService
from where_to.services.voting import VotingSessionService
from where_to.services.watchers import SessionWatcher


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: DocumentStore
    relay: NotificationRelay
    user_service: UserService
    catalog_service: RestaurantCatalogService
    voting_service: VotingSessionService
    session_watcher: SessionWatcher
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = AsyncClient(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    store = SupabaseDocumentStore(supabase_client)
    yelp_client = HttpxYelpClient.create(
        api_key=resolved_settings.yelp_api_key,
        base_url=resolved_settings.yelp_base_url,
    )
    webhook_relay: HttpxWebhookRelay | None = None
    relay: NotificationRelay
    if resolved_settings.notification_webhook_url:
        webhook_relay = HttpxWebhookRelay.create(
            resolved_settings.notification_webhook_url
        )
        relay = webhook_relay
    else:
        relay = LoggingNotificationRelay()

    user_service = UserService(store)
    catalog_service = RestaurantCatalogService(
        client=yelp_client,
        cache=InMemoryCache(),
        search_ttl_seconds=resolved_settings.catalog_cache_ttl_seconds,
    )
    voting_service = VotingSessionService(
        store=store,
        user_service=user_service,
        catalog=catalog_service,
        relay=relay,
        search_radius_meters=resolved_settings.search_radius_meters,
        search_limit=resolved_settings.search_limit,
    )
    session_watcher = SessionWatcher(store=store, voting_service=voting_service)

    async def close_resources() -> None:
        await yelp_client.close()
        if webhook_relay is not None:
            await webhook_relay.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        relay=relay,
        user_service=user_service,
        catalog_service=catalog_service,
        voting_service=voting_service,
        session_watcher=session_watcher,
        close_resources=close_resources,
    )
