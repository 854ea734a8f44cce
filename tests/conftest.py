"""
Pytest configuration and fixtures for bookkeeping hub tests.
"""

import os
import sys
import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest
import yaml

# Environment must be in place before the api package creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOCAL_STORAGE_DIR", tempfile.mkdtemp(prefix="bookkeeping-storage-"))

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

from fastapi.testclient import TestClient  # noqa: E402

import api.auth as auth_module  # noqa: E402
from api import create_app  # noqa: E402
from api.database import SessionLocal, engine  # noqa: E402
from api.models import Base  # noqa: E402

ADMIN_TOKEN = "test-admin-token"
ACCOUNTANT_TOKEN = "test-accountant-token"
VIEWER_TOKEN = "test-viewer-token"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def auth_config(tmp_path, monkeypatch):
    """Install an auth config with one user per role."""
    config_path = tmp_path / "api_users.yaml"
    config_path.write_text(yaml.safe_dump({
        "users": [
            {"id": "admin", "token": ADMIN_TOKEN, "name": "Admin", "role": "admin"},
            {"id": "acc", "token": ACCOUNTANT_TOKEN, "name": "Accountant", "role": "accountant"},
            {"id": "viewer", "token": VIEWER_TOKEN, "name": "Viewer", "role": "viewer"},
        ],
        "permissions": {
            "admin": ["*"],
            "accountant": ["view", "edit", "export"],
            "viewer": ["view"],
        },
    }))
    config = auth_module.AuthConfig(config_path)
    monkeypatch.setattr(auth_module, "auth_config", config)
    return config


@pytest.fixture
def database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(database):
    """Database session bound to the test engine."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(database, auth_config, tmp_path, monkeypatch):
    """Application with its own caches and local storage directory."""
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path / "storage"))
    return create_app()


@pytest.fixture
def client(app) -> TestClient:
    """Test client authenticated as admin."""
    return TestClient(app, headers={"Authorization": f"Bearer {ADMIN_TOKEN}"})


@pytest.fixture
def anonymous_client(app) -> TestClient:
    """Test client without credentials."""
    return TestClient(app)


@pytest.fixture
def sample_company() -> dict:
    """Return a valid company payload."""
    return {
        "legal_name": "Northwind Trading Ltd",
        "trading_name": "Northwind",
        "registration_no": "REG-1001",
        "registration_date": "2020-05-01",
        "country_of_registration": "Estonia",
        "base_currency": "EUR",
        "email": "office@northwind.example",
        "industry": "Retail",
        "status": "Active",
    }


@pytest.fixture
def company(client, sample_company) -> dict:
    """Create a company through the API."""
    response = client.post("/api/companies", json=sample_company)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def bank_account(client, company) -> dict:
    """Create a bank account for the sample company."""
    response = client.post("/api/bank-accounts", json={
        "company_id": company["id"],
        "bank_name": "First Bank",
        "account_name": "Northwind Operating",
        "currency": "EUR",
        "iban": "EE382200221020145685",
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def client_record(client, company) -> dict:
    """Create a legal-entity client for the sample company."""
    response = client.post("/api/clients", json={
        "company_id": company["id"],
        "client_type": "LEGAL_ENTITY",
        "name": "Contoso GmbH",
        "email": "billing@contoso.example",
        "contact_person_name": "Erika Mustermann",
        "registration_number": "HRB-42",
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def invoice_payload(company) -> dict:
    """Return a draft invoice payload for the sample company."""
    return {
        "from_company_id": company["id"],
        "client_name": "Contoso GmbH",
        "client_email": "billing@contoso.example",
        "issue_date": date.today().isoformat(),
        "due_date": (date.today() + timedelta(days=30)).isoformat(),
        "currency": "EUR",
        "tax_rate": 20,
        "items": [
            {"product_name": "Consulting", "quantity": 10, "unit_price": 100},
            {"product_name": "Travel", "quantity": 1, "unit_price": 250.5},
        ],
    }
