"""Error taxonomy shared by services and the API layer."""


class AnimeHubError(Exception):
    """Base class for errors reported to clients."""

    category = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.category, "message": self.message}


class ValidationError(AnimeHubError):
    """Malformed or missing input."""

    category = "validation_error"
    status_code = 400


class Unauthenticated(AnimeHubError):
    """No active session."""

    category = "unauthenticated"
    status_code = 401


class Forbidden(AnimeHubError):
    """Authenticated, but not allowed to touch this resource."""

    category = "forbidden"
    status_code = 403


class NotFound(AnimeHubError):
    """Resource id does not resolve."""

    category = "not_found"
    status_code = 404


class InternalError(AnimeHubError):
    """Storage or filesystem failure."""

    category = "internal_error"
    status_code = 500
