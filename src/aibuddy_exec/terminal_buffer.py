"""Bounded terminal output sink written by the executor."""

import time
from collections import deque
from typing import Deque, List

from aibuddy_exec.constants import DEFAULT_TERMINAL_LINES
from aibuddy_exec.models import TerminalLine


class TerminalBuffer:
    """Ring buffer of terminal lines; the oldest lines are dropped on overflow.

    Only the executor's sequential loop writes to it, so no locking.
    """

    def __init__(self, max_lines: int = DEFAULT_TERMINAL_LINES, listener=None):
        if max_lines < 1:
            raise ValueError("max_lines must be >= 1")
        self.max_lines = max_lines
        self._lines: Deque[TerminalLine] = deque(maxlen=max_lines)
        self._listener = listener
        self.dropped = 0

    def add(self, line_type: str, text: str) -> TerminalLine:
        line = TerminalLine(type=line_type, text=text, timestamp=time.time())
        if len(self._lines) == self.max_lines:
            self.dropped += 1
        self._lines.append(line)
        if self._listener is not None:
            self._listener(line)
        return line

    def lines(self) -> List[TerminalLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def clear(self) -> None:
        self._lines.clear()
        self.dropped = 0
