"""User membership bookkeeping for voting sessions."""

from dataclasses import dataclass, replace

from where_to.domain.models import UserRecord
from where_to.errors import NoUserFound
from where_to.services.store import USERS, DocumentStore, where_contains, where_in


@dataclass
class UserService:
    """Reads users and keeps their session membership in step with sessions.

    Every mutation re-reads the user document first; cached user objects are
    never written back.
    """

    store: DocumentStore

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Return a user by id, if present."""
        document = await self.store.get(USERS, user_id)
        if document is None:
            return None
        return UserRecord.from_document(document)

    async def require_user(self, user_id: str | None) -> UserRecord:
        """Return the user or raise NoUserFound."""
        if not user_id:
            raise NoUserFound()
        user = await self.get_user(user_id)
        if user is None:
            raise NoUserFound(f"No user found with id {user_id}")
        return user

    async def get_users(self, user_ids: list[str]) -> list[UserRecord]:
        """Return the users that exist among the given ids."""
        if not user_ids:
            return []
        documents = await self.store.query(USERS, [where_in("id", user_ids)])
        return [UserRecord.from_document(document) for document in documents]

    async def members_of(self, session_id: str) -> list[UserRecord]:
        """Return users who list the session among their active sessions."""
        documents = await self.store.query(
            USERS, [where_contains("active_voting_sessions", session_id)]
        )
        return [UserRecord.from_document(document) for document in documents]

    async def save_user(self, user: UserRecord) -> None:
        """Persist a user document."""
        await self.store.set(USERS, user.id, user.to_document())

    async def join_session(self, user_id: str, session_id: str) -> UserRecord:
        """Add a session to the user's active sessions."""
        user = await self.require_user(user_id)
        if session_id in user.active_voting_sessions:
            return user
        updated = replace(
            user, active_voting_sessions=user.active_voting_sessions | {session_id}
        )
        await self.save_user(updated)
        return updated

    async def leave_session(self, user_id: str, session_id: str) -> bool:
        """Remove a session from the user's active sessions.

        Returns False when the user is gone or was not a member.
        """
        user = await self.get_user(user_id)
        if user is None or session_id not in user.active_voting_sessions:
            return False
        await self.save_user(
            replace(
                user,
                active_voting_sessions=user.active_voting_sessions - {session_id},
            )
        )
        return True

    async def record_outcome(
        self, user_id: str, session_id: str, restaurant_id: str
    ) -> bool:
        """Append the winner to the user's history and retire the session.

        Only applied while the session is still active for the user, so a
        repeated conclusion does not append the winner twice.
        """
        user = await self.get_user(user_id)
        if user is None or session_id not in user.active_voting_sessions:
            return False
        await self.save_user(
            replace(
                user,
                active_voting_sessions=user.active_voting_sessions - {session_id},
                previous_restaurants=(*user.previous_restaurants, restaurant_id),
            )
        )
        return True
