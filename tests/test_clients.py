"""
Tests for the Actual Budget API client.

These tests use responses library to mock HTTP requests,
validating client behavior without making real API calls.
"""

import json

import pytest
import requests
import responses

from primoco_actual.actual_client import (
    ActualAPIError,
    ActualClient,
    ActualConnectionError,
)
from primoco_actual.schemas.posting import LedgerPosting


class TestActualClient:
    """Test Actual HTTP bridge client."""

    BASE_URL = "http://actual.test:5007"
    API_KEY = "actual-key-12345"
    SYNC_ID = "budget-1"

    @property
    def budget_url(self) -> str:
        return f"{self.BASE_URL}/v1/budgets/{self.SYNC_ID}"

    def make_client(self, **kwargs) -> ActualClient:
        return ActualClient(self.BASE_URL, self.API_KEY, self.SYNC_ID, **kwargs)

    @responses.activate
    def test_list_budgets(self):
        """Budgets are unwrapped from the data envelope."""
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/v1/budgets",
            json={"data": [{"groupId": self.SYNC_ID, "name": "My Budget"}]},
            status=200,
        )

        budgets = self.make_client().list_budgets()
        assert budgets[0]["groupId"] == self.SYNC_ID

    @responses.activate
    def test_list_budgets_unauthorized(self):
        """Rejected API key raises ActualAPIError."""
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/v1/budgets",
            json={"error": "Unauthorized"},
            status=401,
        )

        with pytest.raises(ActualAPIError) as exc_info:
            self.make_client().list_budgets()
        assert exc_info.value.status_code == 401

    @responses.activate
    def test_headers(self):
        """API key and encryption password are sent on every request."""
        responses.add(responses.GET, f"{self.BASE_URL}/v1/budgets", json={"data": []})

        client = self.make_client(encryption_password="secret")
        client.list_budgets()

        headers = responses.calls[0].request.headers
        assert headers["x-api-key"] == self.API_KEY
        assert headers["budget-encryption-password"] == "secret"

    @responses.activate
    def test_no_encryption_header_by_default(self):
        responses.add(responses.GET, f"{self.BASE_URL}/v1/budgets", json={"data": []})

        self.make_client().list_budgets()

        assert "budget-encryption-password" not in responses.calls[0].request.headers

    @responses.activate
    def test_list_accounts(self):
        """Test listing accounts."""
        responses.add(
            responses.GET,
            f"{self.budget_url}/accounts",
            json={
                "data": [
                    {"id": "a1", "name": "Girokonto", "offbudget": False, "closed": False},
                    {"id": "a2", "name": "Depot", "offbudget": True, "closed": True},
                ]
            },
        )

        accounts = self.make_client().list_accounts()

        assert [a.name for a in accounts] == ["Girokonto", "Depot"]
        assert accounts[1].offbudget is True
        assert accounts[1].closed is True

    @responses.activate
    def test_create_account(self):
        """Test account creation payload."""
        responses.add(responses.POST, f"{self.budget_url}/accounts", json={"data": "new-acc"})

        account_id = self.make_client().create_account("Bargeld")

        assert account_id == "new-acc"
        body = json.loads(responses.calls[0].request.body)
        assert body == {"account": {"name": "Bargeld", "offbudget": False}, "initialBalance": 0}

    @responses.activate
    def test_category_groups_and_categories(self):
        responses.add(
            responses.GET,
            f"{self.budget_url}/categorygroups",
            json={"data": [{"id": "g1", "name": "Income", "is_income": True}]},
        )
        responses.add(
            responses.GET,
            f"{self.budget_url}/categories",
            json={"data": [{"id": "c1", "name": "Gehalt", "is_income": True, "group_id": "g1"}]},
        )

        client = self.make_client()
        groups = client.list_category_groups()
        categories = client.list_categories()

        assert groups[0].is_income is True
        assert categories[0].group_id == "g1"
        assert categories[0].is_income is True

    @responses.activate
    def test_create_category_group_and_category(self):
        responses.add(responses.POST, f"{self.budget_url}/categorygroups", json={"data": "g2"})
        responses.add(responses.POST, f"{self.budget_url}/categories", json={"data": "c2"})

        client = self.make_client()
        group_id = client.create_category_group("Imported")
        category_id = client.create_category("Lebensmittel", group_id)

        assert (group_id, category_id) == ("g2", "c2")
        assert json.loads(responses.calls[0].request.body) == {
            "category_group": {"name": "Imported", "is_income": False}
        }
        assert json.loads(responses.calls[1].request.body) == {
            "category": {"name": "Lebensmittel", "group_id": "g2", "is_income": False}
        }

    @responses.activate
    def test_list_payees(self):
        responses.add(
            responses.GET,
            f"{self.budget_url}/payees",
            json={
                "data": [
                    {"id": "p1", "name": "Girokonto", "transfer_acct": "a1"},
                    {"id": "p2", "name": None, "transfer_acct": None},
                ]
            },
        )

        payees = self.make_client().list_payees()

        assert payees[0].transfer_acct == "a1"
        assert payees[1].name == ""
        assert payees[1].transfer_acct is None

    @responses.activate
    def test_import_postings(self):
        """Test import call payload and result parsing."""
        responses.add(
            responses.POST,
            f"{self.budget_url}/accounts/a1/transactions/import",
            json={"data": {"added": ["t1"], "updated": ["t2"], "errors": []}},
        )
        posting = LedgerPosting(
            account="a1", date="2024-01-03", amount=-1234, imported_id="fp", payee_name="Bäcker"
        )

        result = self.make_client().import_postings("a1", [posting])

        assert (result.added_count, result.updated_count, result.error_count) == (1, 1, 0)
        body = json.loads(responses.calls[0].request.body)
        assert body["transactions"][0]["imported_id"] == "fp"
        assert body["transactions"][0]["amount"] == -1234
        assert body["transactions"][0]["payee_name"] == "Bäcker"

    @responses.activate
    def test_api_error(self):
        """Non-2xx responses raise ActualAPIError with the server message."""
        responses.add(
            responses.GET,
            f"{self.budget_url}/accounts",
            json={"error": "Budget not found"},
            status=404,
        )

        with pytest.raises(ActualAPIError) as exc_info:
            self.make_client().list_accounts()

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Budget not found"

    @responses.activate
    def test_missing_data_envelope(self):
        responses.add(responses.GET, f"{self.budget_url}/accounts", json={"accounts": []})

        with pytest.raises(ActualAPIError, match="no data"):
            self.make_client().list_accounts()

    @responses.activate
    def test_connection_error(self):
        responses.add(
            responses.GET,
            f"{self.budget_url}/payees",
            body=requests.exceptions.ConnectionError("refused"),
        )

        with pytest.raises(ActualConnectionError):
            self.make_client().list_payees()

    def test_base_url_trailing_slash(self):
        client = ActualClient(f"{self.BASE_URL}/", self.API_KEY, self.SYNC_ID)
        assert client.base_url == self.BASE_URL
        assert client.budget_path == f"/v1/budgets/{self.SYNC_ID}"
