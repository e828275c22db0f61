from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import MalformedStream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagPair:
    code: int
    value: str


class TagCursor:
    """Peekable reader of (group code, value) line pairs.

    Holds at most one pushed back pair. ``line`` is the 1-based number of the
    next physical line to be read.
    """

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines: Iterator[str] = iter(lines)
        self._pending: TagPair | None = None
        self._exhausted = False
        self.line = 1

    def _read_line(self) -> str | None:
        if self._exhausted:
            return None
        try:
            text = next(self._lines)
        except StopIteration:
            self._exhausted = True
            return None
        self.line += 1
        return text

    def next_pair(self) -> TagPair | None:
        if self._pending is not None:
            pair = self._pending
            self._pending = None
            return pair

        code_line_number = self.line
        code_text = self._read_line()
        if code_text is None:
            return None
        code_text = code_text.strip()

        value_text = self._read_line()
        if value_text is None and not code_text:
            return None
        try:
            code = int(code_text)
        except ValueError:
            raise MalformedStream(code_line_number) from None
        if value_text is None:
            logger.warning(
                "input ends after group code %r at line %d; treating as end of input",
                code_text,
                code_line_number,
            )
            return None
        return TagPair(code, value_text.strip())

    def peek(self) -> TagPair | None:
        pair = self.next_pair()
        if pair is not None:
            self.push_back(pair)
        return pair

    def push_back(self, pair: TagPair) -> None:
        if self._pending is not None:
            raise RuntimeError("only one tag pair can be pushed back")
        self._pending = pair

    def __iter__(self) -> Iterator[TagPair]:
        while True:
            pair = self.next_pair()
            if pair is None:
                return
            yield pair
