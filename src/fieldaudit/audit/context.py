"""Actor context for audit records.

The actor is whoever triggered a change. It is held in a context
variable so that concurrent requests or tasks never see each other's
actor. Set it at the edge (request middleware, CLI entry point, job
runner) and every record written in that context picks it up.
"""

from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, NamedTuple


class Actor(NamedTuple):
    """Who is making changes."""

    id: Any
    name: str | None = None


_current_actor: ContextVar[Actor | None] = ContextVar("fieldaudit_actor", default=None)


def set_current_actor(actor_id: Any, name: str | None = None) -> Actor:
    """Set the actor for the current context.

    Args:
        actor_id: Identifier of the actor (user id, service name)
        name: Display name stored alongside the id

    Returns:
        The actor now in effect
    """
    actor = Actor(id=actor_id, name=name)
    _current_actor.set(actor)
    return actor


def clear_current_actor() -> None:
    """Clear the actor; subsequent records are system records."""
    _current_actor.set(None)


def get_current_actor() -> Actor | None:
    """Get the actor for the current context, if any."""
    return _current_actor.get()


@contextmanager
def acting_as(actor_id: Any, name: str | None = None) -> Generator[Actor, None, None]:
    """Run a block as the given actor.

    Usage:
        with acting_as(user.id, user.name):
            session.commit()
    """
    actor = Actor(id=actor_id, name=name)
    token = _current_actor.set(actor)
    try:
        yield actor
    finally:
        _current_actor.reset(token)
