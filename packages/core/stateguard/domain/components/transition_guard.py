"""Transition Guard: pure legality check for a proposed state change."""

from stateguard.domain.components.transition_table import TransitionTable


def allowed(
    table: TransitionTable,
    from_state: str | None,
    to_state: str | None,
    skip: str | None = None,
) -> bool:
    """Check if moving from ``from_state`` to ``to_state`` is legal.

    Args:
        table: The transition table of the entity type.
        from_state: Current (persisted) state, empty for a record never saved.
        to_state: Proposed state.
        skip: Skip marker of the entity, if any.

    Returns:
        For a new record: True iff ``to_state`` or ``skip`` is the initial state.
        Otherwise: True iff ``to_state`` is a declared successor of ``from_state``.
    """
    if not from_state:
        initial = table.initial_state
        return to_state == initial or skip == initial

    return to_state in table.successors(from_state)
