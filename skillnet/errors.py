"""Domain errors raised by services.

Each error carries the HTTP status the API boundary answers with; the
handlers in `error_handlers` do the translation.
"""


class SkillnetError(Exception):
    """Base class for errors surfaced to API callers."""
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SkillnetError):
    """A referenced entity does not exist."""
    http_status = 404


class ForbiddenError(SkillnetError):
    """The caller lacks the relationship role the operation needs."""
    http_status = 403


class ConflictError(SkillnetError):
    """The operation is invalid given the current state (e.g. double accept)."""
    http_status = 400


class UnauthenticatedError(SkillnetError):
    """Missing, invalid or expired bearer token."""
    http_status = 401
