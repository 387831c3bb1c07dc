"""Batched posting delivery to Actual.

Batches for one account are sent strictly in order with a sync checkpoint
after each; accounts are processed one after another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from primoco_actual.services.reconciliation import BATCH_SIZE, chunk_postings

if TYPE_CHECKING:
    from primoco_actual.actual_client import ActualClient
    from primoco_actual.schemas.posting import LedgerPosting

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Totals over all import calls."""

    batches: int = 0
    sent: int = 0
    added: int = 0
    updated: int = 0
    errors: int = 0


def upload_postings(
    client: ActualClient,
    postings_by_account: dict[str, list[LedgerPosting]],
    *,
    account_names: dict[str, str] | None = None,
    batch_size: int = BATCH_SIZE,
    verbose: bool = False,
) -> UploadResult:
    """Send every account's postings in batches.

    Args:
        client: Actual API client.
        postings_by_account: Account id → postings, in delivery order.
        account_names: Account id → name, for log lines.
        batch_size: Maximum postings per import call.
        verbose: Log request payloads and per-error details.

    Returns:
        UploadResult with added/updated/error totals.

    Raises:
        ActualError: On the first failed call; remaining batches are not sent.
    """
    account_names = account_names or {}
    result = UploadResult()

    for account_id, postings in postings_by_account.items():
        name = account_names.get(account_id, f"Unknown ({account_id})")
        for batch in chunk_postings(postings, batch_size):
            outcome = client.import_postings(account_id, batch, log_payload=verbose)

            result.batches += 1
            result.sent += len(batch)
            result.added += outcome.added_count
            result.updated += outcome.updated_count
            result.errors += outcome.error_count

            logger.info(
                f"Imported {len(batch)} transactions for Account '{name}': "
                f"Added {outcome.added_count}, Updated {outcome.updated_count}, "
                f"Errors {outcome.error_count}"
            )
            if verbose:
                for error in outcome.errors:
                    logger.warning(f"Import error for Account '{name}': {error}")

            client.sync()

    return result
