"""Ledger reconciliation: ParsedTransaction → LedgerPosting.

Each transaction becomes zero, one or two postings depending on its kind:

- expense / income: one posting on the source account, category resolved by
  (name, income flag), free-text payee.
- transfer, counter account unknown: downgraded to an expense posting with
  the amount negated and no transfer link.
- transfer, counter account has no transfer payee: skipped.
- transfer, fully resolvable: a primary posting on the source account and a
  mirrored posting on the counter account, linked through transfer_id.

Only ids resolved beforehand are looked up here; nothing is created.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from primoco_actual.schemas.posting import LedgerPosting, link_transfer
from primoco_actual.schemas.transaction import (
    CategoryKey,
    EntryKind,
    ParsedTransaction,
)

if TYPE_CHECKING:
    from primoco_actual.actual_client import ActualPayee

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


def build_transfer_payee_map(payees: Iterable[ActualPayee]) -> dict[str, str]:
    """Map account id → id of the payee that transfers into that account."""
    return {payee.transfer_acct: payee.id for payee in payees if payee.transfer_acct}


def chunk_postings(
    postings: Sequence[LedgerPosting], size: int = BATCH_SIZE
) -> Iterator[list[LedgerPosting]]:
    """Split postings into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got: {size}")
    for start in range(0, len(postings), size):
        yield list(postings[start : start + size])


@dataclass
class ReconciliationResult:
    """Postings grouped by Actual account id, plus what was skipped."""

    postings_by_account: dict[str, list[LedgerPosting]] = field(default_factory=dict)
    skipped_unresolved_account: int = 0
    skipped_no_transfer_payee: int = 0
    downgraded_transfers: int = 0
    linked_transfers: int = 0

    @property
    def posting_count(self) -> int:
        return sum(len(postings) for postings in self.postings_by_account.values())

    @property
    def skipped(self) -> int:
        return self.skipped_unresolved_account + self.skipped_no_transfer_payee

    def add(self, posting: LedgerPosting) -> None:
        self.postings_by_account.setdefault(posting.account, []).append(posting)


class Reconciler:
    """Turns parsed transactions into ledger postings.

    Usage:
        reconciler = Reconciler(account_ids, category_ids, transfer_payees)
        result = reconciler.reconcile(parsed.transactions)
    """

    def __init__(
        self,
        account_ids: dict[str, str],
        category_ids: dict[CategoryKey, str],
        transfer_payees: dict[str, str],
        mark_cleared: bool = False,
    ) -> None:
        """Initialize the reconciler.

        Args:
            account_ids: Account name → Actual account id.
            category_ids: Category key → Actual category id.
            transfer_payees: Actual account id → transfer payee id.
            mark_cleared: Value of the cleared flag on every posting.
        """
        self.account_ids = account_ids
        self.category_ids = category_ids
        self.transfer_payees = transfer_payees
        self.mark_cleared = mark_cleared

    def reconcile(self, transactions: Iterable[ParsedTransaction]) -> ReconciliationResult:
        """Build postings for every transaction."""
        result = ReconciliationResult()
        for tx in transactions:
            account_id = self.account_ids.get(tx.account_name)
            if not account_id:
                logger.warning(
                    f"Skipping transaction: Account '{tx.account_name}' not found. "
                    f"Transaction: {tx.describe()}"
                )
                result.skipped_unresolved_account += 1
                continue

            if tx.entry_kind is EntryKind.TRANSFER:
                self._reconcile_transfer(tx, account_id, result)
            else:
                result.add(self._single_posting(tx, account_id, tx.amount, tx.category_key))

        logger.info(
            f"Reconciled {result.posting_count} postings across "
            f"{len(result.postings_by_account)} accounts"
        )
        return result

    def _reconcile_transfer(
        self, tx: ParsedTransaction, account_id: str, result: ReconciliationResult
    ) -> None:
        counter_id = self.account_ids.get(tx.counter_account_name)
        if not counter_id:
            # Lossy fallback: book it as a plain expense from the source account
            logger.warning(
                f"Transfer counter account '{tx.counter_account_name}' not found, "
                f"importing as expense. Transaction: {tx.describe()}"
            )
            category_key = (
                CategoryKey(tx.category, is_income=False) if tx.category else None
            )
            result.add(self._single_posting(tx, account_id, -tx.amount, category_key))
            result.downgraded_transfers += 1
            return

        counter_payee = self.transfer_payees.get(counter_id)
        if not counter_payee:
            logger.warning(
                f"No transfer payee found for account: '{tx.counter_account_name}'. "
                f"Transaction: {tx.describe()}"
            )
            result.skipped_no_transfer_payee += 1
            return

        source_payee = self.transfer_payees.get(account_id)
        if not source_payee:
            logger.warning(
                f"No transfer payee found for account: '{tx.account_name}'. "
                f"Transaction: {tx.describe()}"
            )
            result.skipped_no_transfer_payee += 1
            return

        primary = LedgerPosting(
            account=account_id,
            date=tx.iso_date,
            amount=-tx.amount,
            imported_id=tx.import_identity,
            payee=counter_payee,
            notes=tx.notes,
            cleared=self.mark_cleared,
        )
        mirror = LedgerPosting(
            account=counter_id,
            date=tx.iso_date,
            amount=tx.amount,
            imported_id=tx.import_identity,
            payee=source_payee,
            notes=tx.notes,
            cleared=self.mark_cleared,
        )
        link_transfer(primary, mirror)
        result.add(primary)
        result.add(mirror)
        result.linked_transfers += 1

    def _single_posting(
        self,
        tx: ParsedTransaction,
        account_id: str,
        amount: int,
        category_key: CategoryKey | None,
    ) -> LedgerPosting:
        category_id = self.category_ids.get(category_key) if category_key else None
        return LedgerPosting(
            account=account_id,
            date=tx.iso_date,
            amount=amount,
            imported_id=tx.import_identity,
            category=category_id,
            payee_name=tx.payee_name,
            notes=tx.notes,
            cleared=self.mark_cleared,
        )
