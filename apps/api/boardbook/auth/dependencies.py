"""
Auth Dependencies

FastAPI dependencies for actor identity and capability checks.

Authentication happens in the gateway in front of this service, which
forwards the actor's id and role as headers.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from boardbook.auth.capabilities import has_capability


@dataclass(frozen=True)
class Actor:
    """The authenticated caller."""

    id: uuid.UUID
    role: str

    def can(self, capability: str) -> bool:
        return has_capability(self.role, capability)


async def get_current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Get the current authenticated actor."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    try:
        actor_id = uuid.UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid actor id",
        )

    return Actor(id=actor_id, role=x_actor_role)


def require_capability(capability: str) -> Callable[..., Awaitable[Actor]]:
    """
    Build a dependency that requires the actor to hold a capability.

    Usage:
        actor: Actor = Depends(require_capability("governance:flags:resolve"))
    """

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing capability: {capability}",
            )
        return actor

    return dependency
