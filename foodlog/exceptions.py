"""
Error taxonomy for the food-entry pipeline.

Every error a caller can see derives from FoodLogError and carries the HTTP
status and machine-readable code the API layer renders. UpstreamDegraded is
raised only inside the oracle orchestrators and is always absorbed there.
"""

from __future__ import annotations


class FoodLogError(Exception):
    """Base class for errors surfaced by the food-entry service."""

    status_code: int = 500
    code: str = "FOODLOG_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationRequired(FoodLogError):
    """No user id could be resolved for the current call."""

    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class NotFound(FoodLogError):
    """A DishEvent, Dish or Trigger referenced by id does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class Forbidden(FoodLogError):
    """The referenced record belongs to another user."""

    status_code = 403
    code = "FORBIDDEN"


class Conflict(FoodLogError):
    """A dish rename collides with another dish of the same user."""

    status_code = 409
    code = "CONFLICT"


class PersistenceFailure(FoodLogError):
    """A store call failed. Never retried by the service."""

    status_code = 500
    code = "PERSISTENCE_FAILURE"


class UpstreamDegraded(FoodLogError):
    """An oracle failed or returned an unusable payload."""

    status_code = 502
    code = "UPSTREAM_DEGRADED"
