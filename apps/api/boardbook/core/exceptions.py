"""
Governance Errors

Typed outcomes raised by the governance services. The HTTP layer maps each
kind to a stable status code; nothing here carries storage error text.
"""

from typing import Any


class GovernanceError(Exception):
    """Base exception for all expected governance outcomes."""

    status_code: int = 400
    kind: str = "governance_error"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        return {"error": self.kind, "message": self.message, **self.details}


class NotFound(GovernanceError):
    """An entity id did not resolve."""

    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=str(entity_id))
        self.entity = entity
        self.entity_id = entity_id


class Conflict(GovernanceError):
    """A uniqueness or in-flight invariant would be violated."""

    status_code = 409
    kind = "conflict"


class InvalidTransition(GovernanceError):
    """A state machine edge is not permitted."""

    status_code = 400
    kind = "invalid_transition"

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Cannot move from {current} to {target}",
            current=str(current),
            target=str(target),
        )
        self.current = current
        self.target = target


class Forbidden(GovernanceError):
    """A state-gated edit or delete was attempted outside its allowed states."""

    status_code = 403
    kind = "forbidden"


class BadRequest(GovernanceError):
    """A required field is missing or a value is outside its enum."""

    status_code = 400
    kind = "bad_request"
