"""Request and response models for the HTTP API."""

from pydantic import BaseModel, Field, model_validator


class CreateSessionRequest(BaseModel):
    """Start a voting session near a point or an address."""

    invitee_ids: list[str] = Field(default_factory=list)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    address: str | None = None
    use_dietary_restrictions: bool = False
    radius_meters: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _require_location(self) -> "CreateSessionRequest":
        has_point = self.latitude is not None and self.longitude is not None
        if not has_point and not self.address:
            raise ValueError("Provide latitude and longitude, or an address")
        return self


class CastVoteRequest(BaseModel):
    """Vote for the next restaurant in the caller's ranking."""

    restaurant_id: str = Field(min_length=1)


class InvitationResponseRequest(BaseModel):
    """Accept or decline an invitation."""

    accept: bool


class VotingSessionModel(BaseModel):
    """Public view of a voting session."""

    id: str
    initiator_id: str
    votes_each: int
    latitude: float
    longitude: float
    participant_ids: list[str]
    restaurant_ids: list[str]
    outcome_id: str | None = None
    use_dietary_restrictions: bool = False
    radius_meters: int | None = None


class InvitationModel(BaseModel):
    """Public view of an invitation."""

    from_id: str
    from_name: str
    to_id: str
    voting_session_id: str


class VoteModel(BaseModel):
    """Public view of a vote."""

    id: str | None = None
    vote_value: int
    user_id: str
    restaurant_id: str
    voting_session_id: str
