"""
Transactions API Tests

Tests for transactions, entry links, soft delete and exports.
"""

import io
from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from api.routes.transactions import date_range_bounds
from conftest import VIEWER_TOKEN


def transaction_payload(company: dict, account: dict, **overrides) -> dict:
    return {
        "company_id": company["id"],
        "date": date.today().isoformat(),
        "paid_by": "Contoso GmbH",
        "paid_to": "Northwind",
        "net_amount": 500,
        "currency": "EUR",
        "account_id": account["id"],
        "account_type": "bank",
        **overrides,
    }


@pytest.fixture
def transaction(client, company, bank_account) -> dict:
    response = client.post("/api/transactions", json=transaction_payload(company, bank_account))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def entry(client, company) -> dict:
    response = client.post("/api/entries", json={
        "company_id": company["id"],
        "type": "revenue",
        "category": "Consulting",
        "description": "March consulting",
        "amount": 500,
        "currency": "EUR",
        "date": date.today().isoformat(),
    })
    assert response.status_code == 201, response.text
    return response.json()


class TestDateRanges:
    """Tests for named date ranges."""

    def test_last_month_in_january(self):
        assert date_range_bounds("last_month", date(2025, 1, 15)) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_this_year(self):
        assert date_range_bounds("this_year", date(2025, 6, 2)) == (date(2025, 1, 1), date(2025, 6, 2))


class TestCreateTransaction:
    """Tests for POST /api/transactions."""

    def test_incoming(self, transaction):
        assert transaction["incoming_amount"] == pytest.approx(500)
        assert transaction["outgoing_amount"] == pytest.approx(0)
        assert transaction["base_currency"] == "EUR"
        assert transaction["base_currency_amount"] == pytest.approx(500)
        assert transaction["status"] == "PENDING"
        assert transaction["company_name"] == "Northwind"

    def test_outgoing_with_rate(self, client, company, bank_account):
        payload = transaction_payload(company, bank_account, net_amount=-120, currency="USD", exchange_rate=1.1)

        data = client.post("/api/transactions", json=payload).json()

        assert data["outgoing_amount"] == pytest.approx(120)
        assert data["incoming_amount"] == pytest.approx(0)
        assert data["base_currency_amount"] == pytest.approx(-132)

    def test_missing_fields(self, client):
        response = client.post("/api/transactions", json={"paid_by": "Someone"})

        assert response.status_code == 400
        assert "net_amount" in response.json()["details"]["missing"]

    def test_invalid_account_type(self, client, company, bank_account):
        payload = transaction_payload(company, bank_account, account_type="card")

        assert client.post("/api/transactions", json=payload).status_code == 400

    def test_unknown_account(self, client, company, bank_account):
        payload = transaction_payload(company, bank_account, account_id="missing")

        assert client.post("/api/transactions", json=payload).status_code == 404


class TestListTransactions:
    """Tests for GET /api/transactions."""

    def test_offset_pagination_with_statistics(self, client, company, bank_account, transaction):
        client.post("/api/transactions", json=transaction_payload(company, bank_account, net_amount=-200))

        data = client.get("/api/transactions", params={"include_stats": True}).json()

        assert data["total"] == 2
        assert "next_cursor" not in data
        assert data["statistics"]["total_incoming"] == pytest.approx(500)
        assert data["statistics"]["total_outgoing"] == pytest.approx(200)
        assert data["statistics"]["net_amount"] == pytest.approx(300)

    def test_cursor_pagination(self, client, company, bank_account):
        for days in range(3):
            day = (date.today() - timedelta(days=days)).isoformat()
            client.post("/api/transactions", json=transaction_payload(company, bank_account, date=day))

        first = client.get("/api/transactions", params={"take": 2}).json()

        assert "total" not in first
        assert len(first["items"]) == 2
        assert first["has_more"] is True

        second = client.get("/api/transactions", params={"take": 2, "cursor": first["next_cursor"]}).json()

        assert len(second["items"]) == 1
        assert second["has_more"] is False
        seen = {tx["id"] for tx in first["items"] + second["items"]}
        assert len(seen) == 3

    def test_date_range_filter(self, client, company, bank_account, transaction):
        old_day = date(date.today().year - 2, 6, 1).isoformat()
        client.post("/api/transactions", json=transaction_payload(company, bank_account, date=old_day))

        data = client.get("/api/transactions", params={"date_range": "this_year"}).json()

        assert [tx["id"] for tx in data["items"]] == [transaction["id"]]

    def test_invalid_date_range(self, client):
        assert client.get("/api/transactions", params={"date_range": "someday"}).status_code == 400


class TestSoftDelete:
    """Tests for DELETE /api/transactions/{id}."""

    def test_deleted_transaction_is_hidden(self, client, transaction):
        assert client.delete(f"/api/transactions/{transaction['id']}").status_code == 200

        assert client.get(f"/api/transactions/{transaction['id']}").status_code == 404
        assert client.get("/api/transactions").json()["total"] == 0

    def test_bank_account_delete_waits_for_transactions(self, client, bank_account, transaction):
        response = client.delete(f"/api/bank-accounts/{bank_account['id']}")
        assert response.status_code == 400
        assert response.json()["details"] == {"transactions": 1}

        client.delete(f"/api/transactions/{transaction['id']}")

        assert client.delete(f"/api/bank-accounts/{bank_account['id']}").status_code == 200


class TestLinks:
    """Tests for linking transactions to bookkeeping entries."""

    def test_link_and_unlink(self, client, transaction, entry):
        linked = client.post(
            f"/api/transactions/{transaction['id']}/link", json={"entry_id": entry["id"]}
        ).json()

        assert linked["linked_entry_id"] == entry["id"]
        assert linked["linked_entry_type"] == "revenue"
        assert linked["linked_entry"]["category"] == "Consulting"

        entry_data = client.get(f"/api/entries/{entry['id']}").json()
        assert [tx["id"] for tx in entry_data["linked_transactions"]] == [transaction["id"]]
        assert client.delete(f"/api/entries/{entry['id']}").status_code == 400

        unlinked = client.post(f"/api/transactions/{transaction['id']}/unlink").json()
        assert unlinked["linked_entry_id"] is None

    def test_unlink_without_link(self, client, transaction):
        response = client.post(f"/api/transactions/{transaction['id']}/unlink")

        assert response.status_code == 400

    def test_link_requires_entry_id(self, client, transaction):
        response = client.post(f"/api/transactions/{transaction['id']}/link", json={})

        assert response.status_code == 400
        assert response.json()["details"] == {"missing": ["entry_id"]}

    def test_link_across_companies_rejected(self, client, transaction):
        other = client.post("/api/companies", json={
            "legal_name": "Other Ltd",
            "trading_name": "Other",
            "registration_no": "REG-2002",
            "registration_date": "2019-01-01",
            "country_of_registration": "Latvia",
            "base_currency": "EUR",
            "email": "office@other.example",
        }).json()
        foreign_entry = client.post("/api/entries", json={
            "company_id": other["id"],
            "type": "expense",
            "category": "Rent",
            "description": "Office rent",
            "amount": 900,
            "currency": "EUR",
            "date": date.today().isoformat(),
        }).json()

        response = client.post(
            f"/api/transactions/{transaction['id']}/link", json={"entry_id": foreign_entry["id"]}
        )

        assert response.status_code == 400


class TestExport:
    """Tests for GET /api/transactions/export."""

    def test_csv(self, client, transaction):
        response = client.get("/api/transactions/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert f'filename="transactions-{date.today().isoformat()}.csv"' in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert len(lines) == 2
        assert lines[1].startswith(f'"{transaction["id"]}"')

    def test_xlsx(self, client, transaction):
        response = client.get("/api/transactions/export", params={"format": "xlsx"})

        ws = load_workbook(io.BytesIO(response.content)).active
        assert ws.max_row == 2
        assert ws.cell(row=2, column=1).value == transaction["id"]

    def test_deleted_transactions_not_exported(self, client, transaction):
        client.delete(f"/api/transactions/{transaction['id']}")

        response = client.get("/api/transactions/export")

        assert len(response.text.splitlines()) == 1

    def test_unsupported_format(self, client):
        assert client.get("/api/transactions/export", params={"format": "pdf"}).status_code == 400

    def test_requires_export_permission(self, app):
        viewer = TestClient(app, headers={"Authorization": f"Bearer {VIEWER_TOKEN}"})

        assert viewer.get("/api/transactions/export").status_code == 403
