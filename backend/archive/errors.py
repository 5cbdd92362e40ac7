"""Exception hierarchy shared by every archive module.

Each error carries the HTTP status the API layer responds with and a short
title used when the error is surfaced to the user as a toast.
"""


class ArchiveError(Exception):
    """Base class for all archive errors."""
    status_code: int = 500
    title: str = "Error"

    def __init__(self, message: str, *, title: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title


class ValidationFailed(ArchiveError):
    """User input was rejected before any backend call was made."""
    status_code = 400
    title = "Missing Information"


class DuplicateInvite(ValidationFailed):
    status_code = 409
    title = "Duplicate Email"


class NotAuthenticated(ArchiveError):
    status_code = 401
    title = "Sign In Required"


class NotFound(ArchiveError):
    status_code = 404
    title = "Not Found"


class BackendError(ArchiveError):
    """An identity, document or blob backend call failed."""
    status_code = 502
    title = "Something Went Wrong"


class AuthFailed(BackendError):
    status_code = 401
    title = "Login Failed"


class BackendTimeout(BackendError):
    status_code = 504
    title = "Request Timed Out"


class ServiceUnavailable(BackendError):
    """A backend service is not configured for this deployment."""
    status_code = 503
    title = "Demo Mode"
