"""Unit tests for the actor request context."""

from uuid import uuid4

import pytest

from crmvault.shared import context
from crmvault.shared.context import (
    ActorContext,
    clear_actor_context,
    get_actor_context,
    set_actor_context,
)


class TestActorContext:
    """Test set/get/clear of the actor context."""

    def test_missing_actor_raises(self):
        clear_actor_context()

        with pytest.raises(RuntimeError):
            get_actor_context()

    def test_set_then_clear(self):
        actor = ActorContext(user_id=uuid4())

        set_actor_context(actor)
        try:
            assert get_actor_context() is actor
        finally:
            clear_actor_context()

        with pytest.raises(RuntimeError):
            get_actor_context()

    def test_public_surface(self):
        """Callers either have an actor or get an error; there is no silent None."""
        assert not hasattr(context, "get_optional_actor_context")
