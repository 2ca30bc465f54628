"""Tests for the Supabase document store."""

import asyncio
from dataclasses import dataclass, field

import pytest

from where_to.adapters.supabase_document_store import SupabaseDocumentStore
from where_to.errors import DocumentNotFound, StoreReadFailed, StoreWriteFailed
from where_to.services.store import ChangeType, where, where_contains, where_in


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "upsert": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        self.last_filters = []
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def upsert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        self.last_filters = []
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("in", column, value))
        return self

    def contains(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("contains", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    async def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeChannel:
    name: str
    listeners: list[tuple[str, str, str, object]] = field(default_factory=list)
    subscribed: bool = False

    def on_postgres_changes(self, event, schema, table, callback):  # type: ignore[no-untyped-def]
        self.listeners.append((event, schema, table, callback))
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        return self

    def emit(self, payload: dict[str, object]) -> None:
        for _event, _schema, _table, callback in self.listeners:
            callback(payload)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    channels: list[FakeChannel] = field(default_factory=list)
    removed: list[FakeChannel] = field(default_factory=list)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name=name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)


def test_create_generates_id_and_returns_stored_id() -> None:
    client = FakeSupabaseClient()
    votes = client.table("votes")
    votes.queue("insert", [{"id": "vote-1", "vote_value": 3}])

    store = SupabaseDocumentStore(client)
    created = asyncio.run(store.create("votes", {"vote_value": 3}))

    assert created == "vote-1"
    assert isinstance(votes.last_payload, dict)
    assert votes.last_payload["vote_value"] == 3
    assert votes.last_payload["id"]


def test_set_upserts_under_explicit_id() -> None:
    client = FakeSupabaseClient()
    sessions = client.table("voting_sessions")

    store = SupabaseDocumentStore(client)
    asyncio.run(store.set("voting_sessions", "s1", {"votes_each": 5}))

    assert sessions.last_payload == {"votes_each": 5, "id": "s1"}


def test_get_returns_row_or_none() -> None:
    client = FakeSupabaseClient()
    users = client.table("users")
    users.queue("select", [{"id": "alice", "name": "Alice"}])

    store = SupabaseDocumentStore(client)

    assert asyncio.run(store.get("users", "alice")) == {"id": "alice", "name": "Alice"}
    assert users.last_filters == [("eq", "id", "alice")]
    assert asyncio.run(store.get("users", "bob")) is None


def test_query_translates_filters() -> None:
    client = FakeSupabaseClient()
    users = client.table("users")
    users.queue("select", [{"id": "alice"}])

    store = SupabaseDocumentStore(client)
    rows = asyncio.run(
        store.query(
            "users",
            [
                where("name", "Alice"),
                where_in("id", ["alice", "bob"]),
                where_contains("active_voting_sessions", "s1"),
            ],
        )
    )

    assert rows == [{"id": "alice"}]
    assert users.last_filters == [
        ("eq", "name", "Alice"),
        ("in", "id", ["alice", "bob"]),
        ("contains", "active_voting_sessions", ["s1"]),
    ]


def test_query_with_empty_membership_filter_skips_request() -> None:
    client = FakeSupabaseClient()
    users = client.table("users")
    users.queue("select", [{"id": "alice"}])

    store = SupabaseDocumentStore(client)

    assert asyncio.run(store.query("users", [where_in("id", [])])) == []
    assert users.response_queue["select"]


def test_delete_missing_row_raises_not_found() -> None:
    client = FakeSupabaseClient()
    invites = client.table("voting_session_invites")
    invites.queue("delete", [{"id": "bob-s1"}])

    store = SupabaseDocumentStore(client)
    asyncio.run(store.delete("voting_session_invites", "bob-s1"))

    with pytest.raises(DocumentNotFound):
        asyncio.run(store.delete("voting_session_invites", "bob-s1"))


def test_backend_failures_are_wrapped() -> None:
    client = FakeSupabaseClient()
    client.table("votes").error = RuntimeError("connection reset")

    store = SupabaseDocumentStore(client)

    with pytest.raises(StoreReadFailed):
        asyncio.run(store.get("votes", "v1"))
    with pytest.raises(StoreWriteFailed):
        asyncio.run(store.set("votes", "v1", {"vote_value": 1}))
    with pytest.raises(StoreWriteFailed):
        asyncio.run(store.delete("votes", "v1"))


def test_subscribe_streams_matching_changes() -> None:
    client = FakeSupabaseClient()
    store = SupabaseDocumentStore(client)

    async def scenario():
        stream = store.subscribe("votes", [where("voting_session_id", "s1")])
        pending = asyncio.ensure_future(anext(stream))
        await asyncio.sleep(0)
        channel = client.channels[0]
        channel.emit(
            {"data": {"type": "INSERT", "record": {"id": "v1", "voting_session_id": "s2"}}}
        )
        channel.emit({"data": {"type": "UNKNOWN", "record": {"id": "v2"}}})
        channel.emit(
            {
                "data": {
                    "type": "DELETE",
                    "old_record": {"id": "v3", "voting_session_id": "s1"},
                }
            }
        )
        event = await pending
        await stream.aclose()
        return channel, event

    channel, event = asyncio.run(scenario())

    assert channel.subscribed is True
    assert channel.listeners[0][:3] == ("*", "public", "votes")
    assert event.type is ChangeType.REMOVED
    assert event.document_id == "v3"
    assert client.removed == [channel]
