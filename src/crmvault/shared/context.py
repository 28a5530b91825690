"""Request context for the authenticated actor."""

from contextvars import ContextVar
from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class ActorContext:
    """The user on whose behalf the current request runs."""

    user_id: UUID


# Context variable to hold the actor for the current request
_actor_context: ContextVar[ActorContext | None] = ContextVar(
    "actor_context", default=None
)


def set_actor_context(ctx: ActorContext) -> None:
    """Set the actor context for the current request."""
    _actor_context.set(ctx)


def get_actor_context() -> ActorContext:
    """Get the actor context for the current request.

    Raises:
        RuntimeError: If no actor context is set (e.g., unauthenticated request).
    """
    ctx = _actor_context.get()
    if ctx is None:
        raise RuntimeError("No actor context available. Please log in.")
    return ctx


def clear_actor_context() -> None:
    """Clear the actor context."""
    _actor_context.set(None)
