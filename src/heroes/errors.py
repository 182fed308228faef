"""Domain exceptions.

Services raise these; the global error handler maps them to HTTP status codes.
Each subclasses the matching builtin so callers that only know ``ValueError``
or ``LookupError`` still catch them.
"""


class HeroesError(Exception):
    """Base class for domain errors."""

    status_code = 400


class NotFoundError(HeroesError, LookupError):
    """Referenced entity does not exist."""

    status_code = 404


class StateConflictError(HeroesError, ValueError):
    """Operation is illegal in the entity's current state."""

    status_code = 400


class DomainValidationError(HeroesError, ValueError):
    """Input is structurally valid but semantically unacceptable."""

    status_code = 400


class AccessDeniedError(HeroesError, PermissionError):
    """Principal may not act on this entity."""

    status_code = 403
