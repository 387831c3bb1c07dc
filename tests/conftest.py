"""Test fixtures and utilities."""

import itertools
import threading
from datetime import datetime
from pathlib import Path

import pytest

from primoco_actual.actual_client import (
    ActualAccount,
    ActualCategory,
    ActualCategoryGroup,
    ActualPayee,
    ImportResult,
)
from primoco_actual.config import ActualConfig, Config, ImportConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"

HEADER = "Date;Entry Type;Value;Category;Person;Account;Counter Account;Group;Note"

# Reference "now" for future-date checks
FIXED_NOW = datetime(2024, 6, 30, 12, 0, 0)


def make_csv(*rows: str, sep_line: bool = True, header: str = HEADER) -> str:
    """Build a Primoco-style CSV document."""
    lines = (["sep=;"] if sep_line else []) + [header, *rows]
    return "\n".join(lines) + "\n"


class FakeActualClient:
    """In-memory stand-in for ActualClient.

    Creating an account also creates its transfer payee, as Actual does.
    """

    def __init__(
        self,
        accounts: dict[str, str] | None = None,
        categories: list[ActualCategory] | None = None,
        groups: list[ActualCategoryGroup] | None = None,
        budgets: list[dict] | None = None,
        transfer_payees: bool = True,
    ) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.transfer_payees = transfer_payees
        self.accounts: dict[str, str] = {}
        self.payees: list[ActualPayee] = []
        self.categories: list[ActualCategory] = list(categories or [])
        self.groups: list[ActualCategoryGroup] = (
            list(groups)
            if groups is not None
            else [ActualCategoryGroup(id="grp-income", name="Income", is_income=True)]
        )
        self.budgets = budgets if budgets is not None else [{"groupId": "budget-1", "name": "My"}]
        self.imported: dict[str, list[list[dict]]] = {}
        self.calls: list[str] = []
        self.shut_down = False
        for name, account_id in (accounts or {}).items():
            self._add_account(name, account_id)

    def _next_id(self, prefix: str) -> str:
        with self._lock:
            return f"{prefix}-{next(self._ids)}"

    def _add_account(self, name: str, account_id: str) -> None:
        with self._lock:
            self.accounts[name] = account_id
            if self.transfer_payees:
                self.payees.append(
                    ActualPayee(id=f"payee-{account_id}", name=name, transfer_acct=account_id)
                )

    def list_budgets(self) -> list[dict]:
        self.calls.append("list_budgets")
        return list(self.budgets)

    def list_accounts(self) -> list[ActualAccount]:
        self.calls.append("list_accounts")
        return [ActualAccount(id=i, name=n) for n, i in self.accounts.items()]

    def create_account(self, name: str, offbudget: bool = False) -> str:
        self.calls.append("create_account")
        account_id = self._next_id("acct")
        self._add_account(name, account_id)
        return account_id

    def list_category_groups(self) -> list[ActualCategoryGroup]:
        self.calls.append("list_category_groups")
        return list(self.groups)

    def create_category_group(self, name: str, is_income: bool = False) -> str:
        self.calls.append("create_category_group")
        group_id = self._next_id("grp")
        self.groups.append(ActualCategoryGroup(id=group_id, name=name, is_income=is_income))
        return group_id

    def list_categories(self) -> list[ActualCategory]:
        self.calls.append("list_categories")
        return list(self.categories)

    def create_category(self, name: str, group_id: str, is_income: bool = False) -> str:
        self.calls.append("create_category")
        category_id = self._next_id("cat")
        with self._lock:
            self.categories.append(
                ActualCategory(id=category_id, name=name, is_income=is_income, group_id=group_id)
            )
        return category_id

    def list_payees(self) -> list[ActualPayee]:
        self.calls.append("list_payees")
        return list(self.payees)

    def import_postings(self, account_id, postings, log_payload=False) -> ImportResult:
        self.calls.append("import_postings")
        self.imported.setdefault(account_id, []).append([p.to_dict() for p in postings])
        return ImportResult(added=[p.id for p in postings])

    def sync(self) -> None:
        self.calls.append("sync")

    def shutdown(self) -> None:
        self.shut_down = True

    def postings_for(self, account_name: str) -> list[dict]:
        """All postings imported into an account, flattened over batches."""
        account_id = self.accounts[account_name]
        return [p for batch in self.imported.get(account_id, []) for p in batch]


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used for future-date checks."""
    return FIXED_NOW


@pytest.fixture
def sample_export_path() -> Path:
    """Path of the sample Primoco export."""
    return FIXTURES_DIR / "primoco_export.csv"


@pytest.fixture
def sample_export_bytes(sample_export_path) -> bytes:
    """Sample Primoco export as raw bytes."""
    return sample_export_path.read_bytes()


@pytest.fixture
def fake_client() -> FakeActualClient:
    """Empty fake ledger with an income group."""
    return FakeActualClient()


@pytest.fixture
def config(sample_export_path) -> Config:
    """Valid configuration pointing at the sample export."""
    return Config(
        actual=ActualConfig(
            base_url="http://actual.test:5007",
            api_key="test-key",
            sync_id="budget-1",
        ),
        import_=ImportConfig(csv_path=sample_export_path, max_workers=2),
    )


CONFIG_ENV_VARS = (
    "ACTUAL_SERVER_URL",
    "ACTUAL_API_KEY",
    "ACTUAL_SYNC_ID",
    "ACTUAL_E2E_PASSWORD",
    "CSV_FILE_PATH",
    "MARK_CLEARED",
    "FORCE_DUPLICATES",
    "DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration overrides inherited from the shell."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
