"""Typed errors raised by the voting core."""


class WhereToError(Exception):
    """Base class for every error the voting core raises."""

    message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NoUserFound(WhereToError):
    """No authenticated user could be resolved."""

    message = "No user found."


class NoRestaurantsMatch(WhereToError):
    """The candidate set was empty after filtering."""

    message = "No restaurants match the filters for this group."


class NotAuthorized(WhereToError):
    """The acting user is not a participant of the session."""

    message = "You are not a participant in this voting session."


class VotingComplete(WhereToError):
    """The user has already cast every vote they are allowed."""

    message = "You have already cast all of your votes."


class AlreadyVoted(WhereToError):
    """The user already voted for this restaurant in this session."""

    message = "You have already voted for this restaurant."


class NotACandidate(WhereToError):
    """The restaurant is not part of the session's candidate set."""

    message = "That restaurant is not part of this voting session."


class NoLocationForAddress(WhereToError):
    """An address could not be resolved to a location."""

    message = "Could not find a location for that address."


class CatalogRequestFailed(WhereToError):
    """The restaurant catalog could not be queried."""

    message = "Could not fetch restaurants."


class MalformedDocument(WhereToError):
    """A persisted document is missing required fields."""

    message = "Stored document is malformed."


class StoreError(WhereToError):
    """Base class for session store failures."""


class StoreReadFailed(StoreError):
    """Reading from the session store failed."""

    message = "Could not read from the session store."


class StoreWriteFailed(StoreError):
    """Writing to the session store failed."""

    message = "Could not write to the session store."


class DocumentNotFound(StoreError):
    """The targeted document does not exist (usually a lost race)."""

    message = "Document not found."
