"""Transition Table: the validated state -> allowed successors graph."""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from stateguard.domain.models.state_machine_error import ConfigError

StateDeclaration = Mapping[str, str | Iterable[str] | None]


class TransitionTable:
    """Normalized, immutable transition graph.

    The first declared state is the initial state of every new entity.

    Example:
        ```python
        table = TransitionTable.build({
            "pending": ["paid", "cancelled"],
            "paid": "shipped",
            "shipped": [],
            "cancelled": [],
        })
        assert table.initial_state == "pending"
        assert table.successors("paid") == frozenset({"shipped"})
        ```
    """

    def __init__(self, transitions: Mapping[str, frozenset[str]]) -> None:
        if not transitions:
            raise ConfigError("A state machine must declare at least one state")
        self._transitions = MappingProxyType(dict(transitions))
        self._initial_state = next(iter(self._transitions))

    @classmethod
    def build(cls, declaration: StateDeclaration) -> "TransitionTable":
        """Build a table from a declaration, validating every successor.

        A single successor may be given as a plain string instead of a list.

        Raises:
            ConfigError: If a successor is not itself a declared state, or the
                declaration is empty.
        """
        if not declaration:
            raise ConfigError("A state machine must declare at least one state")

        declared = [str(state) for state in declaration]
        declared_set = set(declared)
        transitions: dict[str, frozenset[str]] = {}

        for state, successors in declaration.items():
            state_name = str(state)
            if successors is None:
                successors = []
            elif isinstance(successors, str):
                successors = [successors]

            normalized: list[str] = []
            for successor in successors:
                successor_name = str(successor)
                if successor_name not in declared_set:
                    raise ConfigError(
                        f"invalid transition to {successor_name} from {state_name}",
                        details={"from_state": state_name, "to_state": successor_name},
                    )
                normalized.append(successor_name)
            transitions[state_name] = frozenset(normalized)

        return cls(transitions)

    @property
    def initial_state(self) -> str:
        return self._initial_state

    @property
    def states(self) -> tuple[str, ...]:
        """Declared states in declaration order."""
        return tuple(self._transitions)

    def successors(self, state: str) -> frozenset[str]:
        """Legal next states of ``state`` (empty for an undeclared state)."""
        return self._transitions.get(state, frozenset())

    def __contains__(self, state: object) -> bool:
        return state in self._transitions

    def __iter__(self) -> Iterator[str]:
        return iter(self._transitions)

    def __len__(self) -> int:
        return len(self._transitions)

    def as_dict(self) -> dict[str, list[str]]:
        """Plain representation, successors sorted for stable output."""
        return {state: sorted(successors) for state, successors in self._transitions.items()}

    def __repr__(self) -> str:
        return f"TransitionTable({self.as_dict()!r})"
