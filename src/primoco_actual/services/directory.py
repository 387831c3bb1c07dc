"""Account and category resolution against the Actual directory.

Every discovered account name and category key is mapped to exactly one
Actual id: reused when an exact match exists (same name for accounts, same
name and income flag for categories), created otherwise. Creation calls for
independent keys run concurrently; each stage returns only after every call
has completed, and the first failure aborts the stage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from primoco_actual.schemas.transaction import CategoryKey

if TYPE_CHECKING:
    from primoco_actual.actual_client import ActualClient

logger = logging.getLogger(__name__)

InT = TypeVar("InT")
OutT = TypeVar("OutT")


class PreconditionError(Exception):
    """The ledger is missing something the import cannot create itself."""

    pass


def map_concurrently(
    fn: Callable[[InT], OutT],
    items: Sequence[InT],
    max_workers: int,
) -> list[OutT]:
    """Apply ``fn`` to every item with bounded concurrency, preserving order.

    The first failure (in input order) is raised after cancelling work that
    has not started yet.
    """
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        futures = [pool.submit(fn, item) for item in items]
        try:
            return [future.result() for future in futures]
        except Exception:
            for future in futures:
                future.cancel()
            raise


@dataclass
class DirectoryResult:
    """Resolved ids for one stage."""

    ids: dict = field(default_factory=dict)
    created: int = 0
    reused: int = 0


class DirectoryService:
    """Resolves discovered accounts and categories to Actual ids.

    Usage:
        directory = DirectoryService(client, max_workers=4)
        accounts = directory.ensure_accounts(parsed.sorted_accounts())
        categories = directory.ensure_categories(parsed.sorted_categories())
    """

    def __init__(
        self,
        client: ActualClient,
        max_workers: int = 4,
        category_group: str = "Imported",
        verbose: bool = False,
    ) -> None:
        """Initialize the directory service.

        Args:
            client: Actual API client.
            max_workers: Maximum concurrent creation calls.
            category_group: Expense group that receives new expense categories.
            verbose: Log every reused entity, not just created ones.
        """
        self.client = client
        self.max_workers = max_workers
        self.category_group = category_group
        self.verbose = verbose

    def ensure_accounts(self, names: Iterable[str]) -> DirectoryResult:
        """Map account names to ids, creating missing accounts."""
        existing: dict[str, str] = {}
        for account in self.client.list_accounts():
            existing.setdefault(account.name, account.id)

        result = DirectoryResult()
        missing: list[str] = []
        for name in names:
            if name in existing:
                result.ids[name] = existing[name]
                result.reused += 1
                if self.verbose:
                    logger.info(f"Account already exists: {name} (ID: {existing[name]})")
            else:
                missing.append(name)

        created_ids = map_concurrently(self.client.create_account, missing, self.max_workers)
        for name, account_id in zip(missing, created_ids):
            result.ids[name] = account_id
            result.created += 1
            logger.info(f"Created new account: {name} (ID: {account_id})")

        return result

    def ensure_categories(self, keys: Iterable[CategoryKey]) -> DirectoryResult:
        """Map category keys to ids, creating missing categories.

        New expense categories go into the configured expense group (created
        if absent); new income categories go into the existing income group.

        Raises:
            PreconditionError: If an income category must be created but the
                budget has no income group.
        """
        existing: dict[CategoryKey, str] = {}
        for category in self.client.list_categories():
            existing.setdefault(CategoryKey(category.name, category.is_income), category.id)

        result = DirectoryResult()
        missing: list[CategoryKey] = []
        for key in keys:
            if key in existing:
                result.ids[key] = existing[key]
                result.reused += 1
                if self.verbose:
                    logger.info(f"Category already exists: {key} (ID: {existing[key]})")
            else:
                missing.append(key)

        if not missing:
            return result

        expense_group_id, income_group_id = self._resolve_groups(
            need_expense=any(not key.is_income for key in missing),
            need_income=any(key.is_income for key in missing),
        )

        def create(key: CategoryKey) -> str:
            group_id = income_group_id if key.is_income else expense_group_id
            return self.client.create_category(key.name, group_id, key.is_income)

        created_ids = map_concurrently(create, missing, self.max_workers)
        for key, category_id in zip(missing, created_ids):
            result.ids[key] = category_id
            result.created += 1
            kind = "income" if key.is_income else "expense"
            logger.info(f"Created new {kind} category: {key.name} (ID: {category_id})")

        return result

    def _resolve_groups(self, need_expense: bool, need_income: bool) -> tuple[str | None, str | None]:
        """Find (or create) the expense import group and find the income group."""
        groups = self.client.list_category_groups()
        expense_group = next(
            (g for g in groups if g.name == self.category_group and not g.is_income), None
        )
        income_group = next((g for g in groups if g.is_income), None)

        if need_income and income_group is None:
            raise PreconditionError("No existing income category group found in Actual.")

        expense_group_id = expense_group.id if expense_group else None
        if need_expense and expense_group_id is None:
            logger.info(f"Creating '{self.category_group}' category group...")
            expense_group_id = self.client.create_category_group(self.category_group, False)
            logger.info(f"Created '{self.category_group}' category group (ID: {expense_group_id})")

        return expense_group_id, income_group.id if income_group else None
