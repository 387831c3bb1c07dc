"""
Canonical parsed transaction (SSOT).

Every row that survives parsing becomes exactly one ParsedTransaction.
The parse pass also returns the discovered accounts and categories as
explicit values; downstream services never read them from module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import NamedTuple

from .dedupe import ImportIdentityIndex


class EntryKind(str, Enum):
    """Entry type as exported by Primoco (case-normalized)."""

    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"

    @classmethod
    def from_source(cls, value: str | None) -> EntryKind:
        """Parse a source entry type, ignoring case and surrounding whitespace.

        Raises:
            ValueError: If the value is not a known entry type.
        """
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown entry type: {value!r}") from None


class CategoryKey(NamedTuple):
    """Identity of a category: same name with a different income flag is a different category."""

    name: str
    is_income: bool

    @classmethod
    def for_kind(cls, name: str, kind: EntryKind) -> CategoryKey:
        return cls(name=name, is_income=kind is EntryKind.INCOME)

    def __str__(self) -> str:
        return f"{'income' if self.is_income else 'expense'}:{self.name}"


@dataclass(frozen=True)
class ParsedTransaction:
    """A single cleaned transaction row.

    ``amount`` is in minor units (cents), signed as in the source file.
    """

    date: date
    amount: int
    entry_kind: EntryKind
    account_name: str
    import_identity: str
    category: str = ""
    counter_account_name: str = ""
    payee_name: str = ""
    notes: str = ""

    @property
    def category_key(self) -> CategoryKey | None:
        """Category identity, or None if the row has no category."""
        if not self.category:
            return None
        return CategoryKey.for_kind(self.category, self.entry_kind)

    @property
    def iso_date(self) -> str:
        return self.date.isoformat()

    def describe(self) -> str:
        """Short human-readable form for log lines."""
        return (
            f"{self.iso_date}, {self.amount}, '{self.category}', "
            f"'{self.notes}' ({self.entry_kind.value})"
        )


@dataclass
class ParseResult:
    """Everything the parse pass produces.

    Counters record rows dropped for row-level reasons; they never abort
    the scan.
    """

    transactions: list[ParsedTransaction] = field(default_factory=list)
    accounts: set[str] = field(default_factory=set)
    categories: set[CategoryKey] = field(default_factory=set)
    identities: ImportIdentityIndex = field(default_factory=ImportIdentityIndex)
    encoding: str = ""
    delimiter: str = ";"

    # Row-level skip counters
    dropped_rows: int = 0  # no Date column at all (blank / trailer lines)
    invalid_dates: int = 0
    future_dates: int = 0
    invalid_amounts: int = 0
    invalid_kinds: int = 0
    missing_accounts: int = 0

    @property
    def skipped(self) -> int:
        """Rows rejected with a warning (excludes silently dropped lines)."""
        return (
            self.invalid_dates
            + self.future_dates
            + self.invalid_amounts
            + self.invalid_kinds
            + self.missing_accounts
        )

    def sorted_accounts(self) -> list[str]:
        """Account names in case-insensitive order."""
        return sorted(self.accounts, key=lambda name: (name.casefold(), name))

    def sorted_categories(self) -> list[CategoryKey]:
        """Category keys in case-insensitive name order, expense before income."""
        return sorted(
            self.categories, key=lambda key: (key.name.casefold(), key.name, key.is_income)
        )
