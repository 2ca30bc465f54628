"""Group voting session protocol."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from uuid import uuid4

from where_to.domain.models import UserRecord
from where_to.domain.restaurants import Location, RestaurantRecord, SearchFilters
from where_to.domain.voting import Invitation, Vote, VotingSession, invitation_key
from where_to.errors import (
    AlreadyVoted,
    DocumentNotFound,
    NoRestaurantsMatch,
    NotACandidate,
    NotAuthorized,
    NoUserFound,
    VotingComplete,
)
from where_to.services.notifications import (
    EventName,
    LifecycleEvent,
    NotificationRelay,
)
from where_to.services.restaurants import RestaurantCatalogService
from where_to.services.store import (
    INVITATIONS,
    VOTES,
    VOTING_SESSIONS,
    DocumentStore,
    where,
    where_in,
)
from where_to.services.users import UserService

MIN_VOTES_EACH = 5

_logger = logging.getLogger(__name__)


def compute_votes_each(candidate_count: int, participant_count: int) -> int:
    """Number of ranked votes each participant may cast.

    ``participant_count`` counts the invitees, not the initiator.
    """
    return min(candidate_count, max(participant_count + 1, MIN_VOTES_EACH))


def tally_votes(votes: Iterable[Vote]) -> str | None:
    """Return the restaurant with the highest total weight.

    Exact ties go to the lowest restaurant id.
    """
    totals: dict[str, int] = {}
    for vote in votes:
        totals[vote.restaurant_id] = totals.get(vote.restaurant_id, 0) + vote.vote_value
    if not totals:
        return None
    return min(totals, key=lambda restaurant_id: (-totals[restaurant_id], restaurant_id))


def filter_candidates(
    restaurants: Sequence[RestaurantRecord],
    participants: Sequence[UserRecord],
    *,
    use_dietary_restrictions: bool,
) -> list[RestaurantRecord]:
    """Drop blacklisted, unsuitable and closed restaurants, keeping order."""
    blacklisted: set[str] = set()
    for participant in participants:
        blacklisted |= participant.blacklisted_restaurants

    seen: set[str] = set()
    candidates = []
    for restaurant in restaurants:
        if restaurant.id in blacklisted or restaurant.id in seen:
            continue
        seen.add(restaurant.id)
        candidates.append(restaurant)

    if use_dietary_restrictions:
        restrictions = [
            participant.dietary_restrictions
            for participant in participants
            if participant.dietary_restrictions
        ]
        candidates = [
            restaurant
            for restaurant in candidates
            if all(restaurant.categories & allowed for allowed in restrictions)
        ]

    # Unknown open status is kept.
    return [restaurant for restaurant in candidates if restaurant.is_open is not False]


@dataclass(frozen=True)
class SessionRoster:
    """Participants of a session split by whether they have joined."""

    session: VotingSession
    joined: list[UserRecord]
    pending: list[str]


@dataclass(frozen=True)
class SessionDashboard:
    """A user's active sessions and pending invitations, freshly read."""

    user: UserRecord
    sessions: list[VotingSession]
    invitations: list[Invitation]


@dataclass(frozen=True)
class VoteReceipt:
    """Result of casting a vote."""

    vote: Vote
    votes_remaining: int
    concluded: VotingSession | None = None


@dataclass
class VotingSessionService:
    """Creates sessions, records votes and retires finished sessions."""

    store: DocumentStore
    user_service: UserService
    catalog: RestaurantCatalogService
    relay: NotificationRelay
    search_radius_meters: int = 16093
    search_limit: int = 20

    async def create_session(  # noqa: PLR0913
        self,
        initiator_id: str,
        invitee_ids: Sequence[str],
        location: Location,
        *,
        use_dietary_restrictions: bool = False,
        radius_meters: int | None = None,
    ) -> VotingSession:
        """Create a session, invite everyone and join the initiator."""
        initiator = await self.user_service.require_user(initiator_id)
        invitees_in_order = list(
            dict.fromkeys(uid for uid in invitee_ids if uid != initiator.id)
        )
        invitees = await self.user_service.get_users(invitees_in_order)
        missing = set(invitees_in_order) - {invitee.id for invitee in invitees}
        if missing:
            raise NoUserFound(f"No user found with id {', '.join(sorted(missing))}")

        radius = radius_meters or self.search_radius_meters
        restaurants = await self.catalog.search_near(
            location, SearchFilters(radius_meters=radius, limit=self.search_limit)
        )
        candidates = filter_candidates(
            restaurants,
            [initiator, *invitees],
            use_dietary_restrictions=use_dietary_restrictions,
        )
        if not candidates:
            raise NoRestaurantsMatch()

        session = VotingSession(
            id=str(uuid4()),
            initiator_id=initiator.id,
            votes_each=compute_votes_each(len(candidates), len(invitees_in_order)),
            location=location,
            participant_ids=(initiator.id, *invitees_in_order),
            restaurant_ids=tuple(restaurant.id for restaurant in candidates),
            use_dietary_restrictions=use_dietary_restrictions,
            radius_meters=radius,
        )
        await self.store.set(VOTING_SESSIONS, session.id, session.to_document())
        invitations = [
            Invitation(
                from_id=initiator.id,
                from_name=initiator.name,
                to_id=invitee_id,
                voting_session_id=session.id,
            )
            for invitee_id in invitees_in_order
        ]
        for invitation in invitations:
            await self.store.set(INVITATIONS, invitation.key, invitation.to_document())
        await self.user_service.join_session(initiator.id, session.id)
        _logger.info(
            "Created voting session %s with %s candidates, %s votes each",
            session.id,
            len(session.restaurant_ids),
            session.votes_each,
        )
        for invitation in invitations:
            await self._publish(
                LifecycleEvent(name=EventName.INVITATION_CREATED, entity=invitation)
            )
        return session

    async def get_session(self, session_id: str) -> VotingSession | None:
        """Return a session by id, if it is still open."""
        document = await self.store.get(VOTING_SESSIONS, session_id)
        if document is None:
            return None
        return VotingSession.from_document(document)

    async def require_session(self, session_id: str) -> VotingSession:
        """Return a session or raise DocumentNotFound."""
        session = await self.get_session(session_id)
        if session is None:
            raise DocumentNotFound(f"Voting session {session_id} not found")
        return session

    async def get_roster(self, session_id: str) -> SessionRoster:
        """Re-read the session and its participants from the store."""
        session = await self.require_session(session_id)
        users = await self.user_service.get_users(list(session.participant_ids))
        joined = [user for user in users if session.id in user.active_voting_sessions]
        joined_ids = {user.id for user in joined}
        pending = [pid for pid in session.participant_ids if pid not in joined_ids]
        return SessionRoster(session=session, joined=joined, pending=pending)

    async def pending_invitations(self, user_id: str) -> list[Invitation]:
        """Return invitations waiting for the user's response."""
        documents = await self.store.query(INVITATIONS, [where("to_id", user_id)])
        return [Invitation.from_document(document) for document in documents]

    async def load_dashboard(self, user_id: str) -> SessionDashboard:
        """Return the user's open sessions and invitations.

        Read-only. Session ids whose session no longer exists are hidden from
        the returned user; ``leave_session`` removes them from the store.
        """
        user = await self.user_service.require_user(user_id)
        active_ids = sorted(user.active_voting_sessions)
        documents = await self.store.query(VOTING_SESSIONS, [where_in("id", active_ids)])
        sessions = [VotingSession.from_document(document) for document in documents]
        found = {session.id for session in sessions}
        if found != set(active_ids):
            user = replace(user, active_voting_sessions=frozenset(found))
        invitations = await self.pending_invitations(user_id)
        return SessionDashboard(user=user, sessions=sessions, invitations=invitations)

    async def respond_to_invitation(
        self, user_id: str, session_id: str, *, accept: bool
    ) -> VotingSession | None:
        """Accept or decline an invitation.

        Returns the session as it stands afterwards, or None when the session
        is already gone.
        """
        key = invitation_key(user_id, session_id)
        document = await self.store.get(INVITATIONS, key)
        if document is None:
            # Teardown deletes leftover invitations along with the session.
            if await self.get_session(session_id) is None:
                _logger.info(
                    "Session %s already resolved; ignoring response from %s",
                    session_id,
                    user_id,
                )
                return None
            raise DocumentNotFound(f"No invitation for {user_id} to {session_id}")
        invitation = Invitation.from_document(document)

        session = await self.get_session(session_id)
        if session is None:
            await self._delete_quietly(INVITATIONS, key)
            return None

        if accept:
            # Membership must land before the invitation disappears.
            await self.user_service.join_session(user_id, session_id)
            await self._delete_quietly(INVITATIONS, key)
        else:
            await self._delete_quietly(INVITATIONS, key)
            session = await self._drop_participant(session_id, user_id)

        await self._publish(
            LifecycleEvent(
                name=EventName.INVITATION_RESPONSE, entity=invitation, accepted=accept
            )
        )
        return session

    async def list_votes(
        self, session_id: str, user_id: str | None = None
    ) -> list[Vote]:
        """Return votes cast in a session, optionally for one user."""
        filters = [where("voting_session_id", session_id)]
        if user_id is not None:
            filters.append(where("user_id", user_id))
        documents = await self.store.query(VOTES, filters)
        return [Vote.from_document(document) for document in documents]

    async def cast_vote(
        self, user_id: str, session_id: str, restaurant_id: str
    ) -> VoteReceipt:
        """Record the user's next ranked vote and conclude when complete."""
        session = await self.require_session(session_id)
        if user_id not in session.participant_ids:
            raise NotAuthorized()
        if restaurant_id not in session.restaurant_ids:
            raise NotACandidate()
        cast = await self.list_votes(session_id, user_id=user_id)
        if len(cast) >= session.votes_each:
            raise VotingComplete()
        if any(vote.restaurant_id == restaurant_id for vote in cast):
            raise AlreadyVoted()

        vote = Vote(
            vote_value=session.votes_each - len(cast),
            user_id=user_id,
            restaurant_id=restaurant_id,
            voting_session_id=session_id,
        )
        vote_id = await self.store.create(VOTES, vote.to_document())
        vote = replace(vote, id=vote_id)
        concluded = await self.conclude_if_complete(session_id)
        return VoteReceipt(
            vote=vote,
            votes_remaining=session.votes_each - len(cast) - 1,
            concluded=concluded,
        )

    async def conclude_if_complete(self, session_id: str) -> VotingSession | None:
        """Conclude the session once every participant has voted in full."""
        session = await self.get_session(session_id)
        if session is None or not session.participant_ids:
            return None
        votes = await self._participant_votes(session)
        if len(votes) < session.vote_quota:
            return None
        return await self._conclude(session, votes)

    async def conclude_session(self, session_id: str) -> VotingSession | None:
        """Tally and retire a session regardless of the quota.

        A session that is already gone is treated as concluded by someone
        else and returns None.
        """
        session = await self.get_session(session_id)
        if session is None:
            _logger.info("Session %s already concluded", session_id)
            return None
        votes = await self._participant_votes(session)
        return await self._conclude(session, votes)

    async def leave_session(self, user_id: str, session_id: str) -> VotingSession | None:
        """Remove the user from a session, abandoning it if they were last."""
        session = await self.get_session(session_id)
        if session is None:
            await self.user_service.leave_session(user_id, session_id)
            return None
        if user_id not in session.participant_ids:
            raise NotAuthorized()
        await self.user_service.leave_session(user_id, session_id)
        await self._delete_quietly(INVITATIONS, invitation_key(user_id, session_id))
        return await self._drop_participant(session_id, user_id)

    async def _drop_participant(
        self, session_id: str, user_id: str
    ) -> VotingSession | None:
        # Re-read so a concurrent removal is not overwritten by a stale roster.
        latest = await self.get_session(session_id)
        if latest is None:
            return None
        remaining = latest.without_participant(user_id)
        if not remaining.participant_ids:
            await self._teardown(remaining)
            _logger.info("Abandoned voting session %s", session_id)
            return None
        await self.store.set(VOTING_SESSIONS, remaining.id, remaining.to_document())
        concluded = await self.conclude_if_complete(remaining.id)
        return concluded or remaining

    async def _participant_votes(self, session: VotingSession) -> list[Vote]:
        participants = set(session.participant_ids)
        return [
            vote
            for vote in await self.list_votes(session.id)
            if vote.user_id in participants
        ]

    async def _conclude(
        self, session: VotingSession, votes: list[Vote]
    ) -> VotingSession | None:
        winner = session.outcome_id or tally_votes(votes)
        if winner is None:
            for participant_id in session.participant_ids:
                await self.user_service.leave_session(participant_id, session.id)
            await self._teardown(session)
            _logger.info("Abandoned voting session %s without votes", session.id)
            return None

        concluded = session if session.outcome_id else session.with_outcome(winner)
        await self.store.set(VOTING_SESSIONS, concluded.id, concluded.to_document())
        for participant_id in concluded.participant_ids:
            await self.user_service.record_outcome(participant_id, concluded.id, winner)
        await self._teardown(concluded)
        _logger.info("Concluded voting session %s with %s", concluded.id, winner)
        await self._publish(
            LifecycleEvent(name=EventName.SESSION_CONCLUDED, entity=concluded)
        )
        return concluded

    async def _teardown(self, session: VotingSession) -> None:
        """Delete votes, leftover invitations and finally the session."""
        for vote in await self.list_votes(session.id):
            if vote.id is not None:
                await self._delete_quietly(VOTES, vote.id)
        invitations = await self.store.query(
            INVITATIONS, [where("voting_session_id", session.id)]
        )
        for document in invitations:
            await self._delete_quietly(INVITATIONS, str(document["id"]))
        await self._delete_quietly(VOTING_SESSIONS, session.id)

    async def _delete_quietly(self, collection: str, document_id: str) -> None:
        try:
            await self.store.delete(collection, document_id)
        except DocumentNotFound:
            _logger.info("%s document %s already deleted", collection, document_id)

    async def _publish(self, event: LifecycleEvent) -> None:
        try:
            await self.relay.publish(event)
        except Exception:
            _logger.exception("Failed to relay %s event", event.name.value)
