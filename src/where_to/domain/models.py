"""Domain models shared across the voting core."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from where_to.errors import MalformedDocument


def require_field(document: Mapping[str, object], key: str) -> object:
    """Return a required document field or fail fast."""
    value = document.get(key)
    if value is None:
        raise MalformedDocument(f"Document is missing required field {key!r}")
    return value


def require_id(value: object, name: str) -> str:
    """Validate a non-empty string identifier."""
    if not isinstance(value, str) or not value.strip():
        raise MalformedDocument(f"{name} must be a non-empty string")
    return value


def string_list(document: Mapping[str, object], key: str) -> list[str]:
    """Read an optional list of strings, treating a missing key as empty."""
    raw = document.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list | tuple | set | frozenset):
        raise MalformedDocument(f"Field {key!r} must be a list")
    return [str(item) for item in raw]


@dataclass(frozen=True)
class UserRecord:
    """A user as seen by the voting core."""

    id: str
    name: str
    blacklisted_restaurants: frozenset[str] = field(default_factory=frozenset)
    active_voting_sessions: frozenset[str] = field(default_factory=frozenset)
    previous_restaurants: tuple[str, ...] = ()
    dietary_restrictions: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        require_id(self.id, "User id")

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "UserRecord":
        """Build a user from its stored document."""
        return cls(
            id=require_id(require_field(document, "id"), "User id"),
            name=str(document.get("name") or ""),
            blacklisted_restaurants=frozenset(
                string_list(document, "blacklisted_restaurants")
            ),
            active_voting_sessions=frozenset(
                string_list(document, "active_voting_sessions")
            ),
            previous_restaurants=tuple(string_list(document, "previous_restaurants")),
            dietary_restrictions=frozenset(
                string_list(document, "dietary_restrictions")
            ),
        )

    def to_document(self) -> dict[str, object]:
        """Return the flat document stored for this user."""
        return {
            "id": self.id,
            "name": self.name,
            "blacklisted_restaurants": sorted(self.blacklisted_restaurants),
            "active_voting_sessions": sorted(self.active_voting_sessions),
            "previous_restaurants": list(self.previous_restaurants),
            "dietary_restrictions": sorted(self.dietary_restrictions),
        }
