"""
Actual Budget API client implementation.

Talks to an actual-http-api bridge (REST in front of @actual-app/api).
All budget-scoped endpoints live under ``/v1/budgets/{sync_id}``; responses
wrap their payload in ``{"data": ...}``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas.posting import LedgerPosting

logger = logging.getLogger(__name__)


class ActualError(Exception):
    """Base exception for Actual client errors."""

    pass


class ActualAPIError(ActualError):
    """API returned an error response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_body: str | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Actual API error {status_code}: {message}")


class ActualConnectionError(ActualError):
    """Failed to connect to the Actual server."""

    pass


@dataclass
class ActualAccount:
    """Account as listed by the ledger."""

    id: str
    name: str
    offbudget: bool = False
    closed: bool = False


@dataclass
class ActualCategoryGroup:
    """Category group as listed by the ledger."""

    id: str
    name: str
    is_income: bool = False


@dataclass
class ActualCategory:
    """Category as listed by the ledger."""

    id: str
    name: str
    is_income: bool = False
    group_id: str | None = None


@dataclass
class ActualPayee:
    """Payee; transfer payees point at the account they transfer to."""

    id: str
    name: str = ""
    transfer_acct: str | None = None


@dataclass
class ImportResult:
    """Outcome of one import call."""

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return len(self.added)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class ActualClient:
    """
    Client for an Actual Budget HTTP bridge.

    Features:
    - Account / category group / category / payee directories
    - Account and category creation
    - Bulk transaction import with imported_id deduplication
    - Automatic retry with backoff
    """

    DEFAULT_TIMEOUT = 60

    def __init__(
        self,
        base_url: str,
        api_key: str,
        sync_id: str,
        encryption_password: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize Actual client.

        Args:
            base_url: Bridge URL (e.g., "http://localhost:5007")
            api_key: Bridge API key
            sync_id: Budget sync id to operate on
            encryption_password: End-to-end encryption password of the budget
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.sync_id = sync_id
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "x-api-key": api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if encryption_password:
            self.session.headers["budget-encryption-password"] = encryption_password

        # POST is retried too: the import endpoint is idempotent via imported_id
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def budget_path(self) -> str:
        return f"/v1/budgets/{self.sync_id}"

    def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict | None = None,
        log_payload: bool = True,
    ) -> requests.Response:
        """Make an API request with error handling.

        ``log_payload=False`` keeps large request bodies out of the debug log.
        """
        url = f"{self.base_url}{endpoint}"

        logger.debug(f"API Request: {method} {url}")
        if json_data and log_payload and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Request body: {json.dumps(json_data, ensure_ascii=False)}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error to {url}: {e}")
            raise ActualConnectionError(
                f"Failed to connect to Actual at {self.base_url}: {e}"
            ) from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}: {e}")
            raise ActualConnectionError(f"Request to Actual timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise ActualError(f"Request failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            error_body = response.text
            try:
                message = response.json().get("error") or response.reason
            except ValueError:
                message = response.reason

            logger.error(f"API Error {response.status_code}: {message}")
            logger.debug(f"Full response body: {error_body}")

            raise ActualAPIError(
                status_code=response.status_code,
                message=message,
                response_body=error_body,
            )

        return response

    def _data(self, response: requests.Response) -> Any:
        """Unwrap the ``data`` envelope."""
        try:
            body = response.json()
        except ValueError as e:
            raise ActualAPIError(
                response.status_code, "Response is not JSON", response.text
            ) from e
        if not isinstance(body, dict) or "data" not in body:
            raise ActualAPIError(response.status_code, "Response has no data", response.text)
        return body["data"]

    def list_budgets(self) -> list[dict]:
        """List budget files known to the server."""
        return list(self._data(self._request("GET", "/v1/budgets")) or [])

    # ------------------------------------------------------------------
    # Directory service
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[ActualAccount]:
        """List all accounts of the budget."""
        data = self._data(self._request("GET", f"{self.budget_path}/accounts"))
        return [
            ActualAccount(
                id=item["id"],
                name=item.get("name", ""),
                offbudget=bool(item.get("offbudget", False)),
                closed=bool(item.get("closed", False)),
            )
            for item in data or []
        ]

    def create_account(self, name: str, offbudget: bool = False) -> str:
        """
        Create an account.

        Returns:
            New account id
        """
        data = self._data(
            self._request(
                "POST",
                f"{self.budget_path}/accounts",
                json_data={"account": {"name": name, "offbudget": offbudget}, "initialBalance": 0},
            )
        )
        logger.debug(f"Created account {name!r} id={data}")
        return str(data)

    def list_category_groups(self) -> list[ActualCategoryGroup]:
        """List all category groups."""
        data = self._data(self._request("GET", f"{self.budget_path}/categorygroups"))
        return [
            ActualCategoryGroup(
                id=item["id"],
                name=item.get("name", ""),
                is_income=bool(item.get("is_income", False)),
            )
            for item in data or []
        ]

    def create_category_group(self, name: str, is_income: bool = False) -> str:
        """
        Create a category group.

        Returns:
            New group id
        """
        data = self._data(
            self._request(
                "POST",
                f"{self.budget_path}/categorygroups",
                json_data={"category_group": {"name": name, "is_income": is_income}},
            )
        )
        return str(data)

    def list_categories(self) -> list[ActualCategory]:
        """List all categories."""
        data = self._data(self._request("GET", f"{self.budget_path}/categories"))
        return [
            ActualCategory(
                id=item["id"],
                name=item.get("name", ""),
                is_income=bool(item.get("is_income", False)),
                group_id=item.get("group_id"),
            )
            for item in data or []
        ]

    def create_category(self, name: str, group_id: str, is_income: bool = False) -> str:
        """
        Create a category inside a group.

        Returns:
            New category id
        """
        data = self._data(
            self._request(
                "POST",
                f"{self.budget_path}/categories",
                json_data={
                    "category": {"name": name, "group_id": group_id, "is_income": is_income}
                },
            )
        )
        return str(data)

    def list_payees(self) -> list[ActualPayee]:
        """List all payees (including per-account transfer payees)."""
        data = self._data(self._request("GET", f"{self.budget_path}/payees"))
        return [
            ActualPayee(
                id=item["id"],
                name=item.get("name") or "",
                transfer_acct=item.get("transfer_acct"),
            )
            for item in data or []
        ]

    # ------------------------------------------------------------------
    # Transaction service
    # ------------------------------------------------------------------

    def import_postings(
        self,
        account_id: str,
        postings: list[LedgerPosting],
        log_payload: bool = False,
    ) -> ImportResult:
        """
        Import postings into an account.

        Rows whose imported_id already exists are matched instead of added.

        Args:
            account_id: Target account id
            postings: Postings for that account
            log_payload: Log the full request body at DEBUG level
        """
        data = self._data(
            self._request(
                "POST",
                f"{self.budget_path}/accounts/{account_id}/transactions/import",
                json_data={"transactions": [posting.to_dict() for posting in postings]},
                log_payload=log_payload,
            )
        )
        data = data or {}
        errors = data.get("errors") or []
        return ImportResult(
            added=list(data.get("added") or []),
            updated=list(data.get("updated") or []),
            errors=errors if isinstance(errors, list) else [errors],
        )

    def sync(self) -> None:
        """
        Propagate pending changes.

        The bridge downloads, writes and syncs the budget within each request,
        so there is nothing left to push; this is the ordering checkpoint the
        pipeline calls between stages and batches.
        """
        logger.debug(f"Sync checkpoint for budget {self.sync_id}")

    def shutdown(self) -> None:
        """Release the HTTP session."""
        self.session.close()
