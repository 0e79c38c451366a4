class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    public = False

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    status_code = 400
    public = True


class AuthError(StorefrontError):
    status_code = 401
    public = True


class NotFoundError(StorefrontError):
    status_code = 404
    public = True


class StorageError(StorefrontError):
    """Persistence failure; logged, reported to callers as a generic error."""


class UpstreamError(StorefrontError):
    """Media host or mail provider failure."""
