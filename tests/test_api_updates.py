"""
Partial Update Tests

Tests for PUT requests shared by every resource router: explicit nulls on
required columns and owning-company checks.
"""

from datetime import date
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))


def _payloads(company: dict, bank_account: dict) -> dict[str, tuple[str, dict, str]]:
    """Resource path, create payload and one required column per resource."""
    today = date.today().isoformat()
    return {
        "clients": ("/api/clients", {
            "company_id": company["id"], "name": "Fabrikam Oy", "email": "ap@fabrikam.example",
        }, "name"),
        "vendors": ("/api/vendors", {
            "company_id": company["id"], "company_name": "Supplies Inc",
            "contact_email": "sales@supplies.example",
        }, "company_name"),
        "products": ("/api/products", {"name": "Paper", "price": 4.5, "currency": "EUR"}, "name"),
        "payment-methods": ("/api/payment-methods", {"type": "bank", "name": "Main account"}, "name"),
        "bank-accounts": ("/api/bank-accounts", {
            "company_id": company["id"], "bank_name": "Second Bank",
            "account_name": "Northwind Savings", "currency": "EUR",
        }, "bank_name"),
        "digital-wallets": ("/api/digital-wallets", {
            "company_id": company["id"], "wallet_type": "crypto", "wallet_name": "Treasury",
            "wallet_address": "0xabc", "currency": "USDT",
        }, "wallet_name"),
        "entries": ("/api/entries", {
            "company_id": company["id"], "type": "revenue", "category": "Consulting",
            "description": "March consulting", "amount": 500, "currency": "EUR", "date": today,
        }, "description"),
        "transactions": ("/api/transactions", {
            "company_id": company["id"], "date": today, "paid_by": "Contoso GmbH",
            "paid_to": "Northwind", "net_amount": 500, "currency": "EUR",
            "account_id": bank_account["id"], "account_type": "bank",
        }, "paid_by"),
        "notes": ("/api/notes", {"title": "Call the bank"}, "title"),
        "calendar": ("/api/calendar/events", {"title": "VAT deadline", "date": today}, "title"),
    }


RESOURCES = [
    "clients", "vendors", "products", "payment-methods", "bank-accounts",
    "digital-wallets", "entries", "transactions", "notes", "calendar",
]


@pytest.fixture
def payloads(company, bank_account) -> dict:
    return _payloads(company, bank_account)


def create(client, path: str, payload: dict) -> dict:
    response = client.post(path, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestNullUpdates:
    """Tests for explicit nulls in PUT bodies."""

    @pytest.mark.parametrize("resource", RESOURCES)
    def test_null_required_field_rejected(self, client, payloads, resource):
        """Test clearing a required column is a 400 that leaves the record as it was."""
        path, payload, field = payloads[resource]
        record = create(client, path, payload)

        response = client.put(f"{path}/{record['id']}", json={field: None})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing required fields",
            "details": {"missing": [field]},
        }
        assert client.get(f"{path}/{record['id']}").json()[field] == record[field]

    def test_null_optional_field_allowed(self, client, payloads):
        path, payload, _ = payloads["clients"]
        record = create(client, path, {**payload, "city": "Tallinn"})

        response = client.put(f"{path}/{record['id']}", json={"city": None})

        assert response.status_code == 200
        assert response.json()["city"] is None

    def test_blank_required_string_rejected(self, client, payloads):
        path, payload, _ = payloads["clients"]
        record = create(client, path, payload)

        response = client.put(f"{path}/{record['id']}", json={"name": "  "})

        assert response.status_code == 400
        assert response.json()["details"] == {"missing": ["name"]}


class TestCompanyReassignment:
    """Tests for moving a record to another company."""

    @pytest.mark.parametrize("resource", ["clients", "entries", "transactions", "bank-accounts", "digital-wallets"])
    def test_unknown_company_rejected(self, client, payloads, resource):
        path, payload, _ = payloads[resource]
        record = create(client, path, payload)

        response = client.put(f"{path}/{record['id']}", json={"company_id": 999})

        assert response.status_code == 404
        assert response.json() == {"error": "Company not found"}
        assert client.get(f"{path}/{record['id']}").json()["company_id"] == record["company_id"]
