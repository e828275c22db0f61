from __future__ import annotations

from typing import Iterator, overload

from . import codes
from .tags import TagPair


class PairContainer:
    """Ordered multimap of group code to raw string value for one record."""

    def __init__(self, pairs: list[TagPair] | None = None) -> None:
        self._pairs: list[TagPair] = list(pairs) if pairs else []

    def add(self, code: int, value: str) -> None:
        self._pairs.append(TagPair(code, value))

    def clear(self) -> None:
        self._pairs.clear()

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self) -> Iterator[TagPair]:
        return iter(self._pairs)

    def __repr__(self) -> str:
        return f"PairContainer({len(self._pairs)} pairs)"

    @overload
    def first_value(self, code: int) -> str | None: ...

    @overload
    def first_value(self, code: int, default: str) -> str: ...

    def first_value(self, code: int, default: str | None = None) -> str | None:
        for pair in self._pairs:
            if pair.code == code:
                return pair.value
        return default

    def iterate_all(self, code: int) -> Iterator[str]:
        for pair in self._pairs:
            if pair.code == code:
                yield pair.value

    def iter_from(self, code: int) -> Iterator[TagPair]:
        started = False
        for pair in self._pairs:
            if not started and pair.code != code:
                continue
            started = True
            yield pair

    def subclass_pairs(self, marker: str) -> "PairContainer | None":
        found = False
        sub: list[TagPair] = []
        for pair in self._pairs:
            if pair.code == codes.SUBCLASS_MARKER:
                if found:
                    break
                if pair.value == marker:
                    found = True
                continue
            if found:
                sub.append(pair)
        if not found:
            return None
        return PairContainer(sub)

    def get_float(self, code: int, default: float = 0.0) -> float:
        return _to_float(self.first_value(code), default)

    def get_int(self, code: int, default: int = 0) -> int:
        return _to_int(self.first_value(code), default)

    def get_str(self, code: int, default: str = "") -> str:
        return self.first_value(code, default)


def _to_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _to_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return default
