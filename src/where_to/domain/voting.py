"""Domain models for group voting sessions."""

from collections.abc import Mapping
from dataclasses import dataclass, replace

from where_to.domain.models import require_field, require_id, string_list
from where_to.domain.restaurants import Location
from where_to.errors import MalformedDocument


@dataclass(frozen=True)
class VotingSession:
    """A group deciding on a restaurant by ranked voting."""

    id: str
    initiator_id: str
    votes_each: int
    location: Location
    participant_ids: tuple[str, ...]
    restaurant_ids: tuple[str, ...]
    outcome_id: str | None = None
    use_dietary_restrictions: bool = False
    radius_meters: int | None = None

    def __post_init__(self) -> None:
        require_id(self.id, "Voting session id")
        require_id(self.initiator_id, "Initiator id")
        if not self.restaurant_ids:
            raise ValueError("A voting session needs at least one restaurant")
        if len(set(self.restaurant_ids)) != len(self.restaurant_ids):
            raise ValueError("Candidate restaurants must be unique")
        if len(set(self.participant_ids)) != len(self.participant_ids):
            raise ValueError("Participants must be unique")
        if not 1 <= self.votes_each <= len(self.restaurant_ids):
            raise ValueError(
                f"votes_each must be between 1 and {len(self.restaurant_ids)}"
            )
        if self.outcome_id is not None and self.outcome_id not in self.restaurant_ids:
            raise ValueError("Outcome must be one of the candidate restaurants")

    @property
    def vote_quota(self) -> int:
        """Total votes needed before the session can conclude."""
        return len(self.participant_ids) * self.votes_each

    def without_participant(self, user_id: str) -> "VotingSession":
        """Return a copy with the given participant removed."""
        return replace(
            self,
            participant_ids=tuple(pid for pid in self.participant_ids if pid != user_id),
        )

    def with_outcome(self, restaurant_id: str) -> "VotingSession":
        """Return a copy with the winning restaurant recorded."""
        if self.outcome_id is not None:
            raise ValueError("Outcome is already set")
        return replace(self, outcome_id=restaurant_id)

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "VotingSession":
        """Build a session from its stored document."""
        radius = document.get("radius_meters")
        try:
            return cls(
                id=require_id(require_field(document, "id"), "Voting session id"),
                initiator_id=require_id(
                    require_field(document, "initiator_id"), "Initiator id"
                ),
                votes_each=int(require_field(document, "votes_each")),
                location=Location(
                    latitude=float(require_field(document, "latitude")),
                    longitude=float(require_field(document, "longitude")),
                ),
                participant_ids=tuple(string_list(document, "participant_ids")),
                restaurant_ids=tuple(string_list(document, "restaurant_ids")),
                outcome_id=_optional_str(document.get("outcome_id")),
                use_dietary_restrictions=bool(
                    document.get("use_dietary_restrictions", False)
                ),
                radius_meters=int(radius) if radius is not None else None,
            )
        except (TypeError, ValueError) as exc:
            raise MalformedDocument(f"Invalid voting session: {exc}") from exc

    def to_document(self) -> dict[str, object]:
        """Return the flat document stored for this session."""
        return {
            "id": self.id,
            "initiator_id": self.initiator_id,
            "votes_each": self.votes_each,
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
            "participant_ids": list(self.participant_ids),
            "restaurant_ids": list(self.restaurant_ids),
            "outcome_id": self.outcome_id,
            "use_dietary_restrictions": self.use_dietary_restrictions,
            "radius_meters": self.radius_meters,
        }


@dataclass(frozen=True)
class Invitation:
    """A pending request for a user to join a voting session."""

    from_id: str
    from_name: str
    to_id: str
    voting_session_id: str

    def __post_init__(self) -> None:
        require_id(self.from_id, "Inviter id")
        require_id(self.to_id, "Invitee id")
        require_id(self.voting_session_id, "Voting session id")

    @property
    def key(self) -> str:
        """Document key; one invitation per (invitee, session)."""
        return invitation_key(self.to_id, self.voting_session_id)

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "Invitation":
        """Build an invitation from its stored document."""
        return cls(
            from_id=require_id(require_field(document, "from_id"), "Inviter id"),
            from_name=str(document.get("from_name") or ""),
            to_id=require_id(require_field(document, "to_id"), "Invitee id"),
            voting_session_id=require_id(
                require_field(document, "voting_session_id"), "Voting session id"
            ),
        )

    def to_document(self) -> dict[str, object]:
        """Return the flat document stored for this invitation."""
        return {
            "from_id": self.from_id,
            "from_name": self.from_name,
            "to_id": self.to_id,
            "voting_session_id": self.voting_session_id,
        }


@dataclass(frozen=True)
class Vote:
    """A single weighted vote cast in a session."""

    vote_value: int
    user_id: str
    restaurant_id: str
    voting_session_id: str
    id: str | None = None

    def __post_init__(self) -> None:
        if self.vote_value < 1:
            raise ValueError("Vote value must be a positive integer")
        require_id(self.user_id, "Voter id")
        require_id(self.restaurant_id, "Restaurant id")
        require_id(self.voting_session_id, "Voting session id")

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "Vote":
        """Build a vote from its stored document."""
        try:
            return cls(
                vote_value=int(require_field(document, "vote_value")),
                user_id=require_id(require_field(document, "user_id"), "Voter id"),
                restaurant_id=require_id(
                    require_field(document, "restaurant_id"), "Restaurant id"
                ),
                voting_session_id=require_id(
                    require_field(document, "voting_session_id"), "Voting session id"
                ),
                id=_optional_str(document.get("id")),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedDocument(f"Invalid vote: {exc}") from exc

    def to_document(self) -> dict[str, object]:
        """Return the flat document stored for this vote."""
        document: dict[str, object] = {
            "vote_value": self.vote_value,
            "user_id": self.user_id,
            "restaurant_id": self.restaurant_id,
            "voting_session_id": self.voting_session_id,
        }
        if self.id is not None:
            document["id"] = self.id
        return document


def invitation_key(to_id: str, voting_session_id: str) -> str:
    """Build the document key for an invitation."""
    return f"{to_id}-{voting_session_id}"


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
