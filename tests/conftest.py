"""Shared test fixtures."""

import asyncio
from collections.abc import AsyncGenerator, Mapping, Sequence
from dataclasses import dataclass, field
from uuid import uuid4

import pytest

from where_to.adapters.yelp_client import YelpClient
from where_to.config import Settings
from where_to.containers import AppContainer
from where_to.domain.models import UserRecord
from where_to.errors import DocumentNotFound, StoreWriteFailed
from where_to.services.cache import InMemoryCache
from where_to.services.notifications import LifecycleEvent, NotificationRelay
from where_to.services.restaurants import RestaurantCatalogService
from where_to.services.store import (
    USERS,
    ChangeEvent,
    ChangeType,
    DocumentStore,
    FieldFilter,
    document_matches,
)
from where_to.services.users import UserService
from where_to.services.voting import VotingSessionService
from where_to.services.watchers import SessionWatcher


@dataclass
class InMemoryDocumentStore(DocumentStore):
    """In-memory document store with change subscriptions for tests."""

    collections: dict[str, dict[str, dict[str, object]]] = field(default_factory=dict)
    failing_writes: set[str] = field(default_factory=set)
    subscriptions: list[
        tuple[str, list[FieldFilter], asyncio.Queue[ChangeEvent]]
    ] = field(default_factory=list)

    def documents(self, collection: str) -> dict[str, dict[str, object]]:
        return self.collections.setdefault(collection, {})

    async def create(self, collection: str, data: Mapping[str, object]) -> str:
        self._check_writable(collection)
        document_id = str(uuid4())
        document = {**data, "id": document_id}
        self.documents(collection)[document_id] = document
        self._notify(ChangeType.ADDED, collection, document)
        return document_id

    async def set(
        self, collection: str, document_id: str, data: Mapping[str, object]
    ) -> None:
        self._check_writable(collection)
        existing = self.documents(collection).get(document_id)
        document = {**data, "id": document_id}
        self.documents(collection)[document_id] = document
        change = ChangeType.ADDED if existing is None else ChangeType.MODIFIED
        self._notify(change, collection, document)

    async def get(self, collection: str, document_id: str) -> dict[str, object] | None:
        document = self.documents(collection).get(document_id)
        return dict(document) if document is not None else None

    async def query(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> list[dict[str, object]]:
        return [
            dict(document)
            for document in self.documents(collection).values()
            if document_matches(filters, document)
        ]

    async def delete(self, collection: str, document_id: str) -> None:
        self._check_writable(collection)
        document = self.documents(collection).pop(document_id, None)
        if document is None:
            raise DocumentNotFound(f"{collection} document {document_id} not found")
        self._notify(ChangeType.REMOVED, collection, document)

    async def subscribe(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> AsyncGenerator[ChangeEvent, None]:
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        subscription = (collection, list(filters), queue)
        self.subscriptions.append(subscription)
        try:
            while True:
                yield await queue.get()
        finally:
            self.subscriptions.remove(subscription)

    def _check_writable(self, collection: str) -> None:
        if collection in self.failing_writes:
            raise StoreWriteFailed(f"Write to {collection} rejected")

    def _notify(
        self, change: ChangeType, collection: str, document: dict[str, object]
    ) -> None:
        for subscribed, filters, queue in self.subscriptions:
            if subscribed == collection and document_matches(filters, document):
                queue.put_nowait(
                    ChangeEvent(
                        type=change,
                        collection=collection,
                        document_id=str(document["id"]),
                        document=dict(document),
                    )
                )


def make_business(
    business_id: str,
    *,
    categories: Sequence[str] = ("pizza",),
    is_open_now: bool | None = None,
    rating: float = 4.0,
) -> dict[str, object]:
    """Build a Yelp business payload."""
    business: dict[str, object] = {
        "id": business_id,
        "name": business_id.replace("-", " ").title(),
        "coordinates": {"latitude": 40.7608, "longitude": -111.8910},
        "rating": rating,
        "is_closed": False,
        "categories": [{"alias": alias, "title": alias.title()} for alias in categories],
    }
    if is_open_now is not None:
        business["business_hours"] = [{"hours_type": "REGULAR", "is_open_now": is_open_now}]
    return business


@dataclass
class FakeYelpClient(YelpClient):
    """Fake Yelp client returning a fixed set of businesses."""

    businesses: list[dict[str, object]] = field(
        default_factory=lambda: [make_business(f"restaurant-{i}") for i in range(10)]
    )
    region_center: dict[str, float] | None = field(
        default_factory=lambda: {"latitude": 40.7608, "longitude": -111.891}
    )
    calls: list[dict[str, object]] = field(default_factory=list)

    async def search_businesses(  # noqa: PLR0913
        self,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        location: str | None = None,
        radius: int | None = None,
        limit: int = 20,
        categories: list[str] | None = None,
    ) -> dict[str, object]:
        self.calls.append(
            {
                "latitude": latitude,
                "longitude": longitude,
                "location": location,
                "radius": radius,
                "limit": limit,
            }
        )
        payload: dict[str, object] = {
            "businesses": self.businesses[:limit],
            "total": len(self.businesses),
        }
        if self.region_center is not None:
            payload["region"] = {"center": self.region_center}
        return payload


@dataclass
class RecordingRelay(NotificationRelay):
    """Relay that records published events."""

    events: list[LifecycleEvent] = field(default_factory=list)

    async def publish(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.name.value for event in self.events]


def seed_user(store: InMemoryDocumentStore, user_id: str, **fields) -> UserRecord:
    """Store a user document and return the record."""
    user = UserRecord(id=user_id, name=fields.pop("name", user_id.title()), **fields)
    store.documents(USERS)[user.id] = user.to_document()
    return user


def stored_user(store: InMemoryDocumentStore, user_id: str) -> UserRecord:
    return UserRecord.from_document(store.documents(USERS)[user_id])


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        yelp_api_key="yelp-key",
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def relay() -> RecordingRelay:
    return RecordingRelay()


@pytest.fixture
def yelp_client() -> FakeYelpClient:
    return FakeYelpClient()


@pytest.fixture
def user_service(store: InMemoryDocumentStore) -> UserService:
    return UserService(store)


@pytest.fixture
def catalog_service(yelp_client: FakeYelpClient) -> RestaurantCatalogService:
    return RestaurantCatalogService(client=yelp_client, cache=InMemoryCache())


@pytest.fixture
def voting_service(
    store: InMemoryDocumentStore,
    user_service: UserService,
    catalog_service: RestaurantCatalogService,
    relay: RecordingRelay,
) -> VotingSessionService:
    return VotingSessionService(
        store=store,
        user_service=user_service,
        catalog=catalog_service,
        relay=relay,
    )


@pytest.fixture
def watcher(
    store: InMemoryDocumentStore, voting_service: VotingSessionService
) -> SessionWatcher:
    return SessionWatcher(store=store, voting_service=voting_service)


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryDocumentStore,
    relay: RecordingRelay,
    user_service: UserService,
    catalog_service: RestaurantCatalogService,
    voting_service: VotingSessionService,
    watcher: SessionWatcher,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        relay=relay,
        user_service=user_service,
        catalog_service=catalog_service,
        voting_service=voting_service,
        session_watcher=watcher,
        close_resources=close_resources,
    )
