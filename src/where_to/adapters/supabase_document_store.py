"""Supabase-backed document store with realtime subscriptions."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from dataclasses import dataclass
from uuid import uuid4

from supabase import AsyncClient

from where_to.errors import DocumentNotFound, StoreReadFailed, StoreWriteFailed
from where_to.services.store import (
    ChangeEvent,
    ChangeType,
    DocumentStore,
    FieldFilter,
    FilterOp,
    document_matches,
)

_CHANGE_TYPES = {
    "INSERT": ChangeType.ADDED,
    "UPDATE": ChangeType.MODIFIED,
    "DELETE": ChangeType.REMOVED,
}

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseDocumentStore(DocumentStore):
    """Supabase implementation of the session store.

    Each collection is a table with a text ``id`` primary key. Filtered
    subscriptions on deletes need ``REPLICA IDENTITY FULL`` on the table,
    otherwise only the primary key is delivered for removed rows.
    """

    client: AsyncClient
    schema: str = "public"

    async def create(self, collection: str, data: Mapping[str, object]) -> str:
        """Insert a row and return its generated id."""
        payload = {"id": str(uuid4()), **data}
        try:
            response = await self.client.table(collection).insert(payload).execute()
        except Exception as exc:
            raise StoreWriteFailed(f"Failed to create {collection} document") from exc
        if not response.data:
            raise StoreWriteFailed(f"Failed to create {collection} document")
        return str(response.data[0]["id"])

    async def set(
        self, collection: str, document_id: str, data: Mapping[str, object]
    ) -> None:
        """Upsert a row under an explicit id."""
        payload = {**data, "id": document_id}
        try:
            await self.client.table(collection).upsert(payload).execute()
        except Exception as exc:
            raise StoreWriteFailed(
                f"Failed to save {collection} document {document_id}"
            ) from exc

    async def get(self, collection: str, document_id: str) -> dict[str, object] | None:
        """Return a row by id, if present."""
        try:
            response = (
                await self.client.table(collection)
                .select("*")
                .eq("id", document_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise StoreReadFailed(
                f"Failed to read {collection} document {document_id}"
            ) from exc
        if not response.data:
            return None
        return dict(response.data[0])

    async def query(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> list[dict[str, object]]:
        """Return rows matching every filter."""
        request = self.client.table(collection).select("*")
        for condition in filters:
            if condition.op is FilterOp.EQUALS:
                request = request.eq(condition.field, condition.value)
            elif condition.op is FilterOp.IN:
                values = list(condition.value)  # type: ignore[call-overload]
                if not values:
                    return []
                request = request.in_(condition.field, values)
            else:
                request = request.contains(condition.field, [condition.value])
        try:
            response = await request.execute()
        except Exception as exc:
            raise StoreReadFailed(f"Failed to query {collection}") from exc
        return [dict(row) for row in response.data or []]

    async def delete(self, collection: str, document_id: str) -> None:
        """Delete a row by id; a missing row raises DocumentNotFound."""
        try:
            response = (
                await self.client.table(collection)
                .delete()
                .eq("id", document_id)
                .execute()
            )
        except Exception as exc:
            raise StoreWriteFailed(
                f"Failed to delete {collection} document {document_id}"
            ) from exc
        if not response.data:
            raise DocumentNotFound(f"{collection} document {document_id} not found")

    async def subscribe(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> AsyncGenerator[ChangeEvent, None]:
        """Stream realtime changes for rows matching every filter."""
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()

        def on_change(payload: dict[str, object]) -> None:
            event = _change_event(collection, payload)
            if event is not None and document_matches(filters, event.document):
                queue.put_nowait(event)

        channel = self.client.channel(f"{collection}:{uuid4()}")
        channel.on_postgres_changes(
            "*", schema=self.schema, table=collection, callback=on_change
        )
        await channel.subscribe()
        _logger.info("Subscribed to %s changes", collection)
        try:
            while True:
                yield await queue.get()
        finally:
            await self.client.remove_channel(channel)


def _change_event(collection: str, payload: dict[str, object]) -> ChangeEvent | None:
    """Translate a realtime postgres_changes payload into a ChangeEvent."""
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        return None
    raw_type = str(data.get("type") or data.get("eventType") or "").upper()
    change_type = _CHANGE_TYPES.get(raw_type)
    if change_type is None:
        return None
    if change_type is ChangeType.REMOVED:
        record = data.get("old_record") or data.get("old")
    else:
        record = data.get("record") or data.get("new")
    if not isinstance(record, dict) or "id" not in record:
        return None
    return ChangeEvent(
        type=change_type,
        collection=collection,
        document_id=str(record["id"]),
        document=dict(record),
    )
