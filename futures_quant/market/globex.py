"""Globex contract codes such as ``ESH24`` (root, month letter, two-digit year)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

MONTH_CODES = "FGHJKMNQUVXZ"
GLOBEX_RE = re.compile(r"^([A-Z0-9]{2,})([FGHJKMNQUVXZ])([0-9]{2})$")


@total_ordering
@dataclass(slots=True, frozen=True)
class GlobexCode:
    root: str
    month: str
    year: int

    @classmethod
    def parse(cls, symbol: str) -> GlobexCode:
        """Parse a contract symbol; raise ``ValueError`` when it is not a Globex code."""
        match = GLOBEX_RE.match(str(symbol).strip())
        if match is None:
            raise ValueError(f"Invalid Globex contract code: {symbol!r}")
        root, month, yy = match.groups()
        two_digit = int(yy)
        year = 2000 + two_digit if two_digit < 70 else 1900 + two_digit
        return cls(root=root, month=month, year=year)

    @property
    def month_index(self) -> int:
        return MONTH_CODES.index(self.month)

    def _sort_key(self, other: GlobexCode) -> tuple[int, int]:
        if not isinstance(other, GlobexCode):
            raise TypeError(f"Cannot compare GlobexCode with {type(other).__name__}")
        if self.root != other.root:
            raise ValueError(f"Cannot order contracts with different roots: {self} vs {other}")
        return (self.year, self.month_index)

    def __lt__(self, other: GlobexCode) -> bool:
        return self._sort_key(other) < other._sort_key(self)

    def __str__(self) -> str:
        return f"{self.root}{self.month}{self.year % 100:02d}"
