"""Session store interface used by the voting core."""

from collections.abc import AsyncGenerator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

VOTING_SESSIONS = "voting_sessions"
INVITATIONS = "voting_session_invites"
VOTES = "votes"
USERS = "users"


class FilterOp(Enum):
    """Supported query operators."""

    EQUALS = "eq"
    IN = "in"
    CONTAINS = "contains"


@dataclass(frozen=True)
class FieldFilter:
    """A single field condition in a store query."""

    field: str
    op: FilterOp
    value: object

    def matches(self, document: Mapping[str, object]) -> bool:
        """Return True when the document satisfies this condition."""
        actual = document.get(self.field)
        if self.op is FilterOp.EQUALS:
            return actual == self.value
        if self.op is FilterOp.IN:
            return isinstance(self.value, list | tuple | set | frozenset) and (
                actual in self.value
            )
        return isinstance(actual, list | tuple) and self.value in actual


def where(field: str, value: object) -> FieldFilter:
    """Build an equality filter."""
    return FieldFilter(field, FilterOp.EQUALS, value)


def where_in(field: str, values: Sequence[object]) -> FieldFilter:
    """Build a set-membership filter."""
    return FieldFilter(field, FilterOp.IN, list(values))


def where_contains(field: str, value: object) -> FieldFilter:
    """Build an array-contains filter."""
    return FieldFilter(field, FilterOp.CONTAINS, value)


def document_matches(
    filters: Sequence[FieldFilter], document: Mapping[str, object]
) -> bool:
    """Return True when the document satisfies every filter."""
    return all(condition.matches(document) for condition in filters)


class ChangeType(Enum):
    """Kinds of realtime document changes."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """A realtime change to a document matching a subscription."""

    type: ChangeType
    collection: str
    document_id: str
    document: dict[str, object]


class DocumentStore(Protocol):
    """Collection-style document storage with realtime subscriptions.

    Documents are flat mappings. Every document returned by the store carries
    its key under ``"id"``. Reads raise ``StoreReadFailed`` and writes raise
    ``StoreWriteFailed`` when the backend fails; deleting a missing document
    raises ``DocumentNotFound``.
    """

    async def create(self, collection: str, data: Mapping[str, object]) -> str:
        """Insert a document under a generated key and return the key."""

    async def set(
        self, collection: str, document_id: str, data: Mapping[str, object]
    ) -> None:
        """Create or replace the document stored under an explicit key."""

    async def get(self, collection: str, document_id: str) -> dict[str, object] | None:
        """Return a document by key, if present."""

    async def query(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> list[dict[str, object]]:
        """Return every document matching all filters."""

    async def delete(self, collection: str, document_id: str) -> None:
        """Delete a document by key."""

    def subscribe(
        self, collection: str, filters: Sequence[FieldFilter]
    ) -> AsyncGenerator[ChangeEvent, None]:
        """Stream changes to documents matching all filters."""
