"""Error taxonomy for the recommendation service.

Only validation, authentication, not-found and persistence errors reach the
caller. `UpstreamDegraded` is raised and absorbed inside the pipeline when a
model call or image fetch fails and a degraded answer is produced instead.
"""


class ShowroomError(Exception):
    """Base class for service errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShowroomError):
    """The request is missing or has malformed input."""

    status_code = 400


class AuthenticationError(ShowroomError):
    """No authenticated caller identity was supplied."""

    status_code = 401


class NotFoundError(ShowroomError):
    """Unknown thread id, soft-deleted thread, or another user's thread."""

    status_code = 404


class UpstreamDegraded(ShowroomError):
    """A model provider or image host failed; the pipeline degrades."""

    status_code = 502

    def __init__(self, message: str, image_related: bool = False):
        super().__init__(message)
        self.image_related = image_related


class PersistenceError(ShowroomError):
    """A thread store read or write failed."""

    status_code = 500
