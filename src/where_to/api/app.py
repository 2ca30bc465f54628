"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.responses import JSONResponse

from where_to.api.models import (
    CastVoteRequest,
    CreateSessionRequest,
    InvitationModel,
    InvitationResponseRequest,
    VoteModel,
    VotingSessionModel,
)
from where_to.app_logging import configure_logging
from where_to.containers import AppContainer
from where_to.domain.models import UserRecord
from where_to.domain.restaurants import Location
from where_to.domain.voting import Invitation, VotingSession
from where_to.errors import (
    AlreadyVoted,
    CatalogRequestFailed,
    DocumentNotFound,
    MalformedDocument,
    NoLocationForAddress,
    NoRestaurantsMatch,
    NotACandidate,
    NotAuthorized,
    NoUserFound,
    StoreError,
    VotingComplete,
    WhereToError,
)

_ERROR_STATUS: list[tuple[type[WhereToError], int]] = [
    (NoUserFound, status.HTTP_401_UNAUTHORIZED),
    (NotAuthorized, status.HTTP_403_FORBIDDEN),
    (DocumentNotFound, status.HTTP_404_NOT_FOUND),
    (VotingComplete, status.HTTP_409_CONFLICT),
    (AlreadyVoted, status.HTTP_409_CONFLICT),
    (NoRestaurantsMatch, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NoLocationForAddress, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NotACandidate, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (CatalogRequestFailed, status.HTTP_502_BAD_GATEWAY),
    (StoreError, status.HTTP_502_BAD_GATEWAY),
    (MalformedDocument, status.HTTP_502_BAD_GATEWAY),
]


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def current_user(
    request: Request, x_user_id: str | None = Header(default=None)
) -> UserRecord:
    """Resolve the caller from the X-User-Id header."""
    return await _container(request).user_service.require_user(x_user_id)


def create_app(container: AppContainer) -> FastAPI:  # noqa: C901
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(WhereToError)
    async def where_to_error_handler(
        request: Request, exc: WhereToError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        body: CreateSessionRequest,
        request: Request,
        user: UserRecord = Depends(current_user),
    ) -> VotingSessionModel:
        """Create a voting session and invite the given users."""
        state_container = _container(request)
        if body.latitude is not None and body.longitude is not None:
            location = Location(latitude=body.latitude, longitude=body.longitude)
        else:
            location = await state_container.catalog_service.locate(str(body.address))
        session = await state_container.voting_service.create_session(
            user.id,
            body.invitee_ids,
            location,
            use_dietary_restrictions=body.use_dietary_restrictions,
            radius_meters=body.radius_meters,
        )
        return _session_model(session)

    @app.get("/sessions/{session_id}")
    async def get_session(
        session_id: str,
        request: Request,
        user: UserRecord = Depends(current_user),
    ) -> dict[str, object]:
        """Return a session with its joined and pending participants."""
        roster = await _container(request).voting_service.get_roster(session_id)
        if user.id not in roster.session.participant_ids:
            raise NotAuthorized()
        return {
            "session": _session_model(roster.session),
            "joined": [{"id": member.id, "name": member.name} for member in roster.joined],
            "pending": roster.pending,
        }

    @app.post("/sessions/{session_id}/votes", status_code=status.HTTP_201_CREATED)
    async def cast_vote(
        session_id: str,
        body: CastVoteRequest,
        request: Request,
        user: UserRecord = Depends(current_user),
    ) -> dict[str, object]:
        """Cast the caller's next ranked vote."""
        receipt = await _container(request).voting_service.cast_vote(
            user.id, session_id, body.restaurant_id
        )
        return {
            "vote": VoteModel(**receipt.vote.to_document()),
            "votes_remaining": receipt.votes_remaining,
            "outcome_id": receipt.concluded.outcome_id if receipt.concluded else None,
        }

    @app.post("/sessions/{session_id}/leave")
    async def leave_session(
        session_id: str,
        request: Request,
        user: UserRecord = Depends(current_user),
    ) -> dict[str, object]:
        """Leave a voting session."""
        session = await _container(request).voting_service.leave_session(
            user.id, session_id
        )
        return {"session": _session_model(session) if session else None}

    @app.get("/me/sessions")
    async def my_sessions(
        request: Request, user: UserRecord = Depends(current_user)
    ) -> dict[str, object]:
        """Return the caller's open voting sessions."""
        dashboard = await _container(request).voting_service.load_dashboard(user.id)
        return {"sessions": [_session_model(s) for s in dashboard.sessions]}

    @app.get("/me/invitations")
    async def my_invitations(
        request: Request, user: UserRecord = Depends(current_user)
    ) -> dict[str, object]:
        """Return invitations waiting for the caller."""
        invitations = await _container(request).voting_service.pending_invitations(
            user.id
        )
        return {"invitations": [_invitation_model(i) for i in invitations]}

    @app.post("/invitations/{session_id}/respond")
    async def respond_to_invitation(
        session_id: str,
        body: InvitationResponseRequest,
        request: Request,
        user: UserRecord = Depends(current_user),
    ) -> dict[str, object]:
        """Accept or decline an invitation to a session."""
        session = await _container(request).voting_service.respond_to_invitation(
            user.id, session_id, accept=body.accept
        )
        return {"session": _session_model(session) if session else None}

    return app


def _status_for(exc: WhereToError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _session_model(session: VotingSession) -> VotingSessionModel:
    return VotingSessionModel(**session.to_document())


def _invitation_model(invitation: Invitation) -> InvitationModel:
    return InvitationModel(**invitation.to_document())
