"""Tests for the actor context."""

from fieldaudit.audit.context import (
    Actor,
    acting_as,
    clear_current_actor,
    get_current_actor,
    set_current_actor,
)


class TestActorContext:
    """Tests for setting and clearing the current actor."""

    def test_default_is_none(self):
        """Test that there is no actor by default."""
        assert get_current_actor() is None

    def test_set_and_clear(self):
        """Test setting and clearing the actor."""
        actor = set_current_actor("u-1", "Jane")
        try:
            assert actor == Actor("u-1", "Jane")
            assert get_current_actor() == actor
        finally:
            clear_current_actor()
        assert get_current_actor() is None

    def test_acting_as_restores_previous(self):
        """Test that acting_as restores the outer actor on exit."""
        set_current_actor("outer")
        try:
            with acting_as("inner", "Bot") as actor:
                assert actor.id == "inner"
                assert get_current_actor() == Actor("inner", "Bot")
            assert get_current_actor() == Actor("outer")
        finally:
            clear_current_actor()
