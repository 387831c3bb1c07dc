"""
Actual Budget transaction payload (SSOT).

This is THE single shape handed to the ledger's import endpoint.

Rules:
- Amount is an integer in minor units, signed from the account's point of view
- Exactly one of payee (id) / payee_name (free text) is set
- Transfers carry transfer_id pointing at the counterpart posting's id
- Transfers never carry a category
"""

import uuid
from dataclasses import dataclass, field
from typing import Any


def new_posting_id() -> str:
    """Generate a fresh posting id."""
    return str(uuid.uuid4())


@dataclass
class LedgerPosting:
    """
    One side of a ledger entry, affecting exactly one account.

    Maps to the transaction object accepted by Actual's importTransactions.
    """

    account: str
    date: str  # YYYY-MM-DD
    amount: int
    imported_id: str
    id: str = field(default_factory=new_posting_id)
    category: str | None = None
    payee: str | None = None
    payee_name: str | None = None
    notes: str = ""
    cleared: bool = False
    transfer_id: str | None = None

    def __post_init__(self) -> None:
        if self.payee and self.payee_name:
            raise ValueError("payee and payee_name are mutually exclusive")

    def to_dict(self) -> dict[str, Any]:
        """Convert to Actual API JSON format."""
        result: dict[str, Any] = {
            "id": self.id,
            "account": self.account,
            "date": self.date,
            "amount": self.amount,
            "notes": self.notes,
            "imported_id": self.imported_id,
            "cleared": self.cleared,
            "category": self.category,
        }

        # Payee reference wins over free text; never send both
        if self.payee is not None:
            result["payee"] = self.payee
        else:
            result["payee_name"] = self.payee_name or ""

        if self.transfer_id is not None:
            result["transfer_id"] = self.transfer_id

        return result


def link_transfer(primary: LedgerPosting, mirror: LedgerPosting) -> None:
    """Cross-link two postings that represent one transfer."""
    primary.transfer_id = mirror.id
    mirror.transfer_id = primary.id
