"""Exception hierarchy shared by the retrieval and realtime subsystems."""


class ExamCoachError(Exception):
    """Base class for all ExamCoach errors."""


class ValidationError(ExamCoachError, ValueError):
    """Input has the wrong shape; never retried."""


class EmbeddingError(ExamCoachError):
    """The embedding collaborator rejected the request or was unreachable."""


class IndexUnavailableError(ExamCoachError):
    """The vector storage collaborator could not complete an operation."""


class SessionCreationError(ExamCoachError):
    """The realtime session endpoint refused to create a session.

    Attributes:
        status_code: HTTP status returned by the collaborator, or None when the
            request never got a response.
        body: Raw response body or transport error detail.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        """Store the collaborator status and body alongside the message."""
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (status {self.status_code}): {self.body}"


class TransportError(ExamCoachError):
    """The offer/answer exchange with the realtime transport failed."""


class TurnStateError(ExamCoachError):
    """An event was delivered to a turn controller that can no longer accept it."""
