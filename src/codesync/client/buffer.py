"""In-memory editor buffer used by the client sync agent."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

ChangeListener = Callable[[str], None]


@dataclass(frozen=True)
class CursorPosition:
    """A 1-based line/column cursor position, as editors report it."""

    line: int = 1
    column: int = 1

    def to_dict(self) -> dict[str, int]:
        """Convert to the wire form used by cursor events."""
        return {"lineNumber": self.line, "column": self.column}

    @classmethod
    def from_dict(cls, data: dict) -> CursorPosition:
        """Build a position from its wire form, defaulting missing fields."""
        return cls(line=int(data.get("lineNumber", 1)), column=int(data.get("column", 1)))


class TextBuffer:
    """Editor model holding text and a cursor.

    ``set_value`` replaces the whole text and notifies every change listener
    synchronously, exactly like a code editor's change event fires for
    programmatic updates. The sync agent relies on that notification to clear
    its applying-remote flag.
    """

    def __init__(self, value: str = "") -> None:
        """Initialize the buffer.

        Args:
            value: Initial text.
        """
        self._value = value
        self._cursor = CursorPosition()
        self._listeners: list[ChangeListener] = []

    @property
    def value(self) -> str:
        """Get the current text."""
        return self._value

    @property
    def cursor(self) -> CursorPosition:
        """Get the current cursor position."""
        return self._cursor

    def subscribe(self, listener: ChangeListener) -> None:
        """Register a change listener."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        """Remove a change listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_value(self, value: str) -> None:
        """Replace the text and notify listeners.

        The cursor is clamped so it stays inside the new text.
        """
        self._value = value
        self._cursor = self.clamp(self._cursor)
        for listener in list(self._listeners):
            listener(value)

    def set_cursor(self, position: CursorPosition) -> None:
        """Move the cursor, clamped to the current text."""
        self._cursor = self.clamp(position)

    def clamp(self, position: CursorPosition) -> CursorPosition:
        """Clamp a position to the lines and columns of the current text."""
        lines = self._value.split("\n")
        line = min(max(position.line, 1), len(lines))
        column = min(max(position.column, 1), len(lines[line - 1]) + 1)
        return CursorPosition(line=line, column=column)
