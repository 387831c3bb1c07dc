"""Import orchestration service.

Runs the ledger-side stages of an import in dependency order:
1. Verify the server has budgets
2. Resolve / create accounts, then sync
3. Resolve / create categories, then sync
4. Reconcile transactions into postings (read-only id lookups)
5. Upload postings in batches, then a final sync

Any ActualError aborts the run; the caller is responsible for shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from primoco_actual.services.directory import DirectoryService, PreconditionError
from primoco_actual.services.reconciliation import (
    Reconciler,
    ReconciliationResult,
    build_transfer_payee_map,
)
from primoco_actual.services.upload import UploadResult, upload_postings

if TYPE_CHECKING:
    from primoco_actual.actual_client import ActualClient
    from primoco_actual.config import Config
    from primoco_actual.schemas.transaction import ParseResult

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """Result of one import run."""

    accounts_created: int = 0
    accounts_reused: int = 0
    categories_created: int = 0
    categories_reused: int = 0
    reconciliation: ReconciliationResult = field(default_factory=ReconciliationResult)
    upload: UploadResult = field(default_factory=UploadResult)


class ImportService:
    """Pushes a parsed export into an Actual budget.

    Usage:
        service = ImportService(client, config)
        service.check_ledger()
        summary = service.run(parsed)
    """

    def __init__(self, client: ActualClient, config: Config) -> None:
        """Initialize the import service.

        Args:
            client: Actual API client.
            config: Application configuration.
        """
        self.client = client
        self.config = config
        self.directory = DirectoryService(
            client,
            max_workers=config.import_.max_workers,
            category_group=config.import_.category_group,
            verbose=config.verbose,
        )

    def check_ledger(self) -> None:
        """Ensure the server is reachable and knows the configured budget.

        Raises:
            PreconditionError: If no budgets exist or the sync id is unknown.
            ActualError: If the server cannot be reached.
        """
        budgets = self.client.list_budgets()
        if not budgets:
            raise PreconditionError("Actual API connection failed: No budgets found.")

        sync_id = self.config.actual.sync_id
        known = {b.get("groupId") for b in budgets if isinstance(b, dict) and b.get("groupId")}
        if known and sync_id not in known:
            raise PreconditionError(f"Budget with sync id '{sync_id}' not found on server.")

    def run(self, parsed: ParseResult) -> ImportSummary:
        """Run the ledger stages for a parsed export."""
        summary = ImportSummary()

        logger.info("Importing Accounts...")
        accounts = self.directory.ensure_accounts(parsed.sorted_accounts())
        summary.accounts_created = accounts.created
        summary.accounts_reused = accounts.reused
        self.client.sync()

        logger.info("Importing Categories...")
        categories = self.directory.ensure_categories(parsed.sorted_categories())
        summary.categories_created = categories.created
        summary.categories_reused = categories.reused
        self.client.sync()

        logger.info("Importing Transactions in batches...")
        transfer_payees = build_transfer_payee_map(self.client.list_payees())
        if self.config.verbose:
            logger.debug(f"Transfer payees by account: {transfer_payees}")

        reconciler = Reconciler(
            account_ids=accounts.ids,
            category_ids=categories.ids,
            transfer_payees=transfer_payees,
            mark_cleared=self.config.import_.mark_cleared,
        )
        summary.reconciliation = reconciler.reconcile(parsed.transactions)

        summary.upload = upload_postings(
            self.client,
            summary.reconciliation.postings_by_account,
            account_names={account_id: name for name, account_id in accounts.ids.items()},
            batch_size=self.config.import_.batch_size,
            verbose=self.config.verbose,
        )

        logger.info("Syncing local budget file with server...")
        self.client.sync()
        return summary
