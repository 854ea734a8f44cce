"""
API Tests

Tests for authentication, error responses, notes, calendar, bank accounts,
digital wallets, cache administration and local storage migration.
"""

from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from cache import CacheKeys
from conftest import ACCOUNTANT_TOKEN, ADMIN_TOKEN
from storage import BANK_ACCOUNTS_KEY, COMPANIES_KEY, DIGITAL_WALLETS_KEY, PRODUCTS_KEY


class TestAuthentication:
    """Tests for token handling."""

    def test_missing_token(self, anonymous_client):
        response = anonymous_client.get("/api/companies")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_unknown_token(self, app):
        stranger = TestClient(app, headers={"Authorization": "Bearer nope"})

        assert stranger.get("/api/companies").status_code == 401

    def test_cookie_token(self, app):
        cookie_client = TestClient(app, cookies={"auth-token": ADMIN_TOKEN})

        assert cookie_client.get("/api/companies").status_code == 200

    def test_development_mode_allows_anonymous(self, anonymous_client, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")

        assert anonymous_client.get("/api/companies").status_code == 200

    def test_public_endpoints(self, anonymous_client):
        assert anonymous_client.get("/health").json() == {"status": "healthy"}
        assert anonymous_client.get("/").json()["status"] == "running"


class TestErrorResponses:
    """Tests for the shared error shape."""

    def test_request_validation(self, client):
        response = client.get("/api/companies", params={"page": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_unhandled_error(self, app):
        @app.get("/api/boom")
        async def boom():
            raise RuntimeError("kaboom")

        test_client = TestClient(
            app,
            headers={"Authorization": f"Bearer {ADMIN_TOKEN}"},
            raise_server_exceptions=False,
        )

        response = test_client.get("/api/boom")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestNotesAndCalendar:
    """Tests for /api/notes and /api/calendar/events."""

    def test_notes_list_cache_cleared_by_create(self, client):
        assert client.get("/api/notes").json()["total"] == 0

        client.post("/api/notes", json={"title": "Call the bank"})

        assert client.get("/api/notes").json()["total"] == 1

    def test_note_requires_title(self, client):
        assert client.post("/api/notes", json={"content": "No title"}).status_code == 400

    def test_event_with_notes(self, client):
        event = client.post("/api/calendar/events", json={
            "title": "VAT deadline",
            "date": date.today().isoformat(),
            "type": "deadline",
            "priority": "high",
        }).json()
        note = client.post("/api/notes", json={"title": "Prepare return", "event_id": event["id"]}).json()

        detail = client.get(f"/api/calendar/events/{event['id']}").json()
        assert [n["id"] for n in detail["notes"]] == [note["id"]]

        assert client.delete(f"/api/calendar/events/{event['id']}").status_code == 200
        assert client.get(f"/api/notes/{note['id']}").json()["event_id"] is None

    def test_invalid_event_type(self, client):
        response = client.post("/api/calendar/events", json={
            "title": "Party", "date": date.today().isoformat(), "type": "party",
        })

        assert response.status_code == 400

    def test_events_list_cache_cleared_by_create(self, client):
        assert client.get("/api/calendar/events").json()["total"] == 0

        client.post("/api/calendar/events", json={"title": "Board meeting", "date": date.today().isoformat()})

        items = client.get("/api/calendar/events").json()["items"]
        assert [e["type"] for e in items] == ["other"]


class TestBankAccountsAndWallets:
    """Tests for /api/bank-accounts and /api/digital-wallets."""

    def test_bank_account_requires_company(self, client):
        response = client.post("/api/bank-accounts", json={
            "company_id": 999, "bank_name": "Ghost Bank", "account_name": "Ghost", "currency": "EUR",
        })

        assert response.status_code == 404

    def test_list_bank_accounts(self, client, company, bank_account):
        data = client.get("/api/bank-accounts", params={"company_id": company["id"]}).json()

        assert [a["id"] for a in data["items"]] == [bank_account["id"]]

    def test_wallet_currencies(self, client, company):
        response = client.post("/api/digital-wallets", json={
            "company_id": company["id"],
            "wallet_type": "crypto",
            "wallet_name": "Treasury",
            "wallet_address": "0xabc",
            "currency": "USDT",
            "currencies": ["eth"],
        })

        assert response.status_code == 201
        assert response.json()["currencies"] == ["USDT", "ETH"]

    def test_wallet_missing_fields(self, client, company):
        response = client.post("/api/digital-wallets", json={"company_id": company["id"]})

        assert response.status_code == 400
        assert "wallet_address" in response.json()["details"]["missing"]


class TestCacheAdministration:
    """Tests for /api/cache."""

    def test_invalidate_all(self, app, client, company):
        client.get(f"/api/companies/{company['id']}")

        response = client.post("/api/cache/invalidate", json={"type": "all"})

        assert response.status_code == 200
        assert response.json()["type"] == "all"
        assert response.json()["success"] is True
        assert app.state.cache_store.get(CacheKeys.company_item(company["id"])) is None

    def test_invalidate_company(self, app, client, company):
        client.get(f"/api/companies/{company['id']}")

        response = client.post("/api/cache/invalidate", json={"type": "company", "id": company["id"]})

        assert response.json() == {"type": "company", "removed": True, "success": True}

    def test_company_requires_id(self, client):
        response = client.post("/api/cache/invalidate", json={"type": "company"})

        assert response.status_code == 400

    def test_unknown_type(self, client):
        response = client.post("/api/cache/invalidate", json={"type": "everything"})

        assert response.status_code == 400
        assert "warm-up" in response.json()["details"]["valid_types"]

    def test_missing_type(self, client):
        response = client.post("/api/cache/invalidate", json={})

        assert response.status_code == 400
        assert response.json()["details"] == {"missing": ["type"]}

    def test_warm_up_fills_statistics(self, app, client, company):
        response = client.post("/api/cache/invalidate", json={"type": "warm-up"})

        assert response.json()["removed"] is True
        assert app.state.statistics_cache.get().total_active == 1

    def test_requires_admin(self, app):
        accountant = TestClient(app, headers={"Authorization": f"Bearer {ACCOUNTANT_TOKEN}"})

        response = accountant.post("/api/cache/invalidate", json={"type": "all"})

        assert response.status_code == 403

    def test_status(self, client, company):
        client.get("/api/companies/statistics")

        data = client.get("/api/cache/status").json()

        assert data["statistics_cached"] is True
        assert data["statistics_refreshing"] is False


class TestDataMigration:
    """Tests for /api/data-migration."""

    def test_import(self, app, client):
        storage = app.state.local_storage
        storage.set_items(COMPANIES_KEY, [
            {
                "id": 1,
                "legalName": "Imported Ltd",
                "tradingName": "Imported",
                "registrationNo": "IMP-1",
                "registrationDate": "2018-02-01",
                "baseCurrency": "EUR",
            },
            {"id": 2, "legalName": "Missing registration"},
        ])
        storage.set_items(PRODUCTS_KEY, [{"name": "Widget", "price": 9.99, "currency": "EUR"}])

        response = client.post("/api/data-migration/import")

        assert response.status_code == 200
        report = response.json()
        assert report["migrated"][COMPANIES_KEY] == 1
        assert report["skipped"][COMPANIES_KEY] == 1
        assert report["migrated"][PRODUCTS_KEY] == 1
        assert len(report["errors"]) == 1

        companies = client.get("/api/companies").json()["items"]
        assert [c["registration_no"] for c in companies] == ["IMP-1"]

    def test_import_skips_existing_and_unknown_company(self, app, client, company):
        storage = app.state.local_storage
        storage.set_items(COMPANIES_KEY, [{
            "legalName": company["legal_name"],
            "tradingName": company["trading_name"],
            "registrationNo": company["registration_no"],
        }])
        storage.set_items(BANK_ACCOUNTS_KEY, [{
            "companyId": 999, "bankName": "Ghost Bank", "accountName": "Ghost", "currency": "EUR",
        }])

        report = client.post("/api/data-migration/import").json()

        assert report["migrated_count"] == 0
        assert report["skipped"][COMPANIES_KEY] == 1
        assert report["skipped"][BANK_ACCOUNTS_KEY] == 1

    def test_export(self, app, client, company, bank_account):
        response = client.post("/api/data-migration/export")

        assert response.json()["exported"] == {
            COMPANIES_KEY: 1,
            PRODUCTS_KEY: 0,
            BANK_ACCOUNTS_KEY: 1,
            DIGITAL_WALLETS_KEY: 0,
        }
        stored = app.state.local_storage.get_items(COMPANIES_KEY)
        assert stored[0]["registration_no"] == company["registration_no"]

    def test_requires_admin(self, app):
        accountant = TestClient(app, headers={"Authorization": f"Bearer {ACCOUNTANT_TOKEN}"})

        assert accountant.post("/api/data-migration/export").status_code == 403
