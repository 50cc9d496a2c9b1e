"""Error taxonomy shared by services and the HTTP layer."""


class FamilyMealError(Exception):
    """Base class for errors that map onto a client-visible status."""

    status_code = 500
    default_message = "internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(FamilyMealError):
    """Missing or invalid bearer credential."""

    status_code = 401
    default_message = "Unauthenticated"


class Forbidden(FamilyMealError):
    """An authorization predicate failed."""

    status_code = 403
    default_message = "Not allowed"


class NotFound(FamilyMealError):
    """The addressed meal or comment does not exist."""

    status_code = 404
    default_message = "Not found"


class InvalidArgument(FamilyMealError):
    """Schema, length or enum validation failed."""

    status_code = 400
    default_message = "Invalid payload"


class RateLimited(FamilyMealError):
    """Too many requests inside the current window."""

    status_code = 429
    default_message = "Too many requests"
