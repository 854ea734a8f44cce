"""
Storage Module Tests

Tests for the file-backed local storage and the banks/wallets service.
"""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from storage import (
    BANK_ACCOUNTS_KEY,
    COMPANIES_KEY,
    DIGITAL_WALLETS_KEY,
    BanksWalletsData,
    BanksWalletsStorage,
    LocalStorage,
    StorageError,
)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage")


class TestLocalStorage:
    """Tests for LocalStorage."""

    def test_missing_key_loads_empty(self, storage):
        """Test that an unknown key loads as an empty list."""
        assert storage.get_items(COMPANIES_KEY) == []
        assert storage.has(COMPANIES_KEY) is False

    def test_set_then_get(self, storage):
        """Test items round-trip through a key file."""
        companies = [{"id": 1, "tradingName": "Northwind"}]
        storage.set_items(COMPANIES_KEY, companies)

        assert storage.get_items(COMPANIES_KEY) == companies
        assert storage.has(COMPANIES_KEY) is True

    def test_set_replaces_wholesale(self, storage):
        """Test a write replaces the previous array."""
        storage.set_items(COMPANIES_KEY, [{"id": 1}, {"id": 2}])
        storage.set_items(COMPANIES_KEY, [{"id": 3}])

        assert storage.get_items(COMPANIES_KEY) == [{"id": 3}]

    def test_corrupt_file_loads_empty(self, storage):
        """Test unparsable content is treated as empty."""
        (storage.directory / f"{COMPANIES_KEY}.json").write_text("{not json")

        assert storage.get_items(COMPANIES_KEY) == []

    def test_non_array_loads_empty(self, storage):
        """Test a JSON object instead of an array is treated as empty."""
        (storage.directory / f"{COMPANIES_KEY}.json").write_text(json.dumps({"id": 1}))

        assert storage.get_items(COMPANIES_KEY) == []

    def test_unserializable_items_raise(self, storage):
        """Test that a circular structure raises StorageError."""
        item = {}
        item["self"] = item

        with pytest.raises(StorageError):
            storage.set_items(COMPANIES_KEY, [item])

    def test_invalid_key_rejected(self, storage):
        """Test keys that could escape the directory are refused."""
        with pytest.raises(ValueError):
            storage.get_items("../secrets")

    def test_remove(self, storage):
        """Test remove reports whether the key existed."""
        storage.set_items(COMPANIES_KEY, [{"id": 1}])

        assert storage.remove(COMPANIES_KEY) is True
        assert storage.remove(COMPANIES_KEY) is False
        assert storage.get_items(COMPANIES_KEY) == []

    def test_listeners_notified_on_write_and_remove(self, storage):
        """Test subscribers receive the changed key."""
        listener = Mock()
        storage.subscribe(listener)

        storage.set_items(COMPANIES_KEY, [])
        storage.remove(COMPANIES_KEY)

        assert [c.args[0] for c in listener.call_args_list] == [COMPANIES_KEY, COMPANIES_KEY]

    def test_unsubscribe(self, storage):
        """Test an unsubscribed listener is no longer called."""
        listener = Mock()
        unsubscribe = storage.subscribe(listener)
        unsubscribe()

        storage.set_items(COMPANIES_KEY, [])

        listener.assert_not_called()

    def test_failing_listener_does_not_break_write(self, storage):
        """Test a raising listener is logged and the write still lands."""
        storage.subscribe(Mock(side_effect=RuntimeError("boom")))
        other = Mock()
        storage.subscribe(other)

        storage.set_items(COMPANIES_KEY, [{"id": 1}])

        assert storage.get_items(COMPANIES_KEY) == [{"id": 1}]
        other.assert_called_once_with(COMPANIES_KEY)


class TestBanksWalletsStorage:
    """Tests for BanksWalletsStorage."""

    def test_load_empty(self, storage):
        """Test loading with nothing stored."""
        service = BanksWalletsStorage(storage)

        data = service.load()

        assert data.bank_accounts == []
        assert data.digital_wallets == []
        assert service.has_data() is False

    def test_save_and_load(self, storage):
        """Test both keys are written and read back."""
        service = BanksWalletsStorage(storage)
        data = BanksWalletsData(
            bank_accounts=[{"id": "b1", "bankName": "First Bank"}],
            digital_wallets=[{"id": "w1", "walletName": "Treasury"}],
        )

        service.save(data)

        assert storage.get_items(BANK_ACCOUNTS_KEY) == data.bank_accounts
        assert storage.get_items(DIGITAL_WALLETS_KEY) == data.digital_wallets
        assert service.load() == data

    def test_clear(self, storage):
        """Test clear removes both keys."""
        service = BanksWalletsStorage(storage)
        service.save(BanksWalletsData(bank_accounts=[{"id": "b1"}]))

        service.clear()

        assert service.has_data() is False
