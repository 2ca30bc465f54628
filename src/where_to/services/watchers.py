"""Realtime reactions to session store changes."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from where_to.domain.voting import Invitation, VotingSession
from where_to.errors import DocumentNotFound, MalformedDocument
from where_to.services.store import (
    INVITATIONS,
    VOTES,
    VOTING_SESSIONS,
    ChangeType,
    DocumentStore,
    where,
    where_in,
)
from where_to.services.voting import SessionRoster, VotingSessionService

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionChange:
    """A change to a watched session.

    ``session`` is None when a removal carried no usable document.
    """

    session_id: str
    session: VotingSession | None
    removed: bool

    @property
    def outcome_id(self) -> str | None:
        """Winning restaurant, known only for concluded sessions."""
        return self.session.outcome_id if self.session else None


@dataclass
class SessionWatcher:
    """Consumes store change streams on behalf of one client."""

    store: DocumentStore
    voting_service: VotingSessionService

    async def watch_invitations(self, user_id: str) -> AsyncIterator[Invitation]:
        """Yield invitations as they are sent to the user."""
        stream = self.store.subscribe(INVITATIONS, [where("to_id", user_id)])
        async with aclosing(stream) as events:
            async for event in events:
                if event.type is ChangeType.ADDED:
                    yield Invitation.from_document(event.document)

    async def watch_rosters(
        self, session_ids: Sequence[str]
    ) -> AsyncIterator[SessionRoster]:
        """Yield a freshly read roster whenever an invitation is answered.

        Invitation deletions are the only response signal, so the roster is
        always re-read from the store rather than patched.
        """
        filters = [where_in("voting_session_id", list(session_ids))]
        async with aclosing(self.store.subscribe(INVITATIONS, filters)) as events:
            async for event in events:
                if event.type is not ChangeType.REMOVED:
                    continue
                session_id = str(event.document.get("voting_session_id", ""))
                if not session_id:
                    continue
                try:
                    roster = await self.voting_service.get_roster(session_id)
                except DocumentNotFound:
                    _logger.info(
                        "Session %s is gone; skipping roster refresh", session_id
                    )
                    continue
                yield roster

    async def watch_votes(self, session_id: str) -> AsyncIterator[VotingSession]:
        """Conclude the session once incoming votes complete the quota.

        Yields the concluded session and stops. Several clients may race here;
        the losers see the session gone and keep waiting until the stream is
        closed.
        """
        filters = [where("voting_session_id", session_id)]
        async with aclosing(self.store.subscribe(VOTES, filters)) as events:
            async for event in events:
                if event.type is not ChangeType.ADDED:
                    continue
                concluded = await self.voting_service.conclude_if_complete(session_id)
                if concluded is not None:
                    yield concluded
                    return

    async def watch_session(self, session_id: str) -> AsyncIterator[SessionChange]:
        """Yield modifications to a session and stop after its removal."""
        filters = [where("id", session_id)]
        async with aclosing(self.store.subscribe(VOTING_SESSIONS, filters)) as events:
            async for event in events:
                try:
                    session = VotingSession.from_document(event.document)
                except MalformedDocument:
                    session = None
                removed = event.type is ChangeType.REMOVED
                yield SessionChange(
                    session_id=session_id, session=session, removed=removed
                )
                if removed:
                    return
