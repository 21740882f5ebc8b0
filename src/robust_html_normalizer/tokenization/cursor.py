"""Explicit byte cursor threaded through the tokenizer's scan helpers.

Scan helpers never share position state through the tokenizer object: each
receives the cursor, advances it, and reports whether it found what it was
looking for. On success the cursor is left on the terminator; on failure it
is left at the end of the buffer.
"""

from dataclasses import dataclass

WHITESPACE = frozenset(b" \t\n\r\f\x0b")
END_OF_DATA = -1


@dataclass
class Cursor:
    """Position within an immutable byte buffer."""

    data: bytes
    pos: int = 0

    def __post_init__(self) -> None:
        """Validate cursor position."""
        if not 0 <= self.pos <= len(self.data):
            raise ValueError(f"Cursor position {self.pos} outside buffer")

    @property
    def current(self) -> int:
        """Byte under the cursor, or ``END_OF_DATA``."""
        if self.pos >= len(self.data):
            return END_OF_DATA
        return self.data[self.pos]

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def advance(self, count: int = 1) -> None:
        self.pos = min(self.pos + count, len(self.data))

    def peek(self, offset: int = 1) -> int:
        """Byte ``offset`` positions ahead of the cursor, or ``END_OF_DATA``."""
        index = self.pos + offset
        if 0 <= index < len(self.data):
            return self.data[index]
        return END_OF_DATA

    def skip_whitespace(self) -> bool:
        """Advance past whitespace; False if the buffer ran out."""
        while self.pos < len(self.data) and self.data[self.pos] in WHITESPACE:
            self.pos += 1
        return self.pos < len(self.data)

    def find(self, pattern: bytes) -> bool:
        """Move to the next occurrence of ``pattern`` at or after the cursor."""
        index = self.data.find(pattern, self.pos)
        if index < 0:
            self.pos = len(self.data)
            return False
        self.pos = index
        return True

    def scan_until(self, stop_bytes: bytes, stop_on_whitespace: bool = False) -> bool:
        """Advance to the first byte in ``stop_bytes`` (or whitespace).

        Args:
            stop_bytes: Terminator bytes
            stop_on_whitespace: Also stop on any whitespace byte

        Returns:
            True if a terminator was found
        """
        data = self.data
        length = len(data)
        pos = self.pos
        while pos < length:
            byte = data[pos]
            if byte in stop_bytes or (stop_on_whitespace and byte in WHITESPACE):
                self.pos = pos
                return True
            pos += 1
        self.pos = length
        return False
