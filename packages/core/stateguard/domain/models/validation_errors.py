"""Validation errors collection attached to every stateful entity."""

from collections.abc import Iterator


class ValidationErrors:
    """Field-keyed collection of validation messages.

    Hooks append to it to explain a veto; the engine appends unknown-state and
    illegal-transition messages. It is cleared at the start of every save.
    """

    def __init__(self) -> None:
        self._messages: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        """Append a message for a field."""
        self._messages.setdefault(field, []).append(message)

    def __getitem__(self, field: str) -> list[str]:
        return list(self._messages.get(field, []))

    def __contains__(self, field: object) -> bool:
        return field in self._messages

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for field, messages in self._messages.items():
            for message in messages:
                yield field, message

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return len(self) > 0

    def clear(self) -> None:
        self._messages.clear()

    def full_messages(self) -> list[str]:
        """Return every message formatted as ``field=message``."""
        return [f"{field}={message}" for field, message in self]

    def __repr__(self) -> str:
        return f"ValidationErrors({self._messages!r})"
