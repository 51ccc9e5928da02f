"""Balance sheet of a federation's assets and liabilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from fedkit.db.base import Database


@dataclass
class AuditItem:
    """One balance entry in milli-satoshi; liabilities are negative."""

    name: str
    milli_sat: int

    def __str__(self) -> str:
        sats = self.milli_sat / 1000.0
        return f"{sats:>+15.3f}|{self.name}"


@dataclass
class Audit:
    """A list of balance entries collected from the modules."""

    items: list[AuditItem] = field(default_factory=list)

    def sum(self) -> AuditItem:
        """The total of all entries."""
        return AuditItem("Total sats", sum(item.milli_sat for item in self.items))

    def add_items(
        self, db: Database, key_prefix: Any, to_milli_sat: Callable[[Any, Any], int]
    ) -> None:
        """Add one entry for every database entry matching ``key_prefix``."""
        self.items.extend(
            AuditItem(repr(key), to_milli_sat(key, value))
            for key, value in db.find_by_prefix(key_prefix)
        )

    def __str__(self) -> str:
        lines = ["- Balance Sheet -", *(str(item) for item in self.items), str(self.sum())]
        return "\n".join(lines)