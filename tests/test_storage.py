"""
Test suite for state storage backends

Tests the in-memory, JSON file and SQLite stores, and saving/loading a full
ledger through them.
"""

import json
import pytest
from decimal import Decimal

from core_ledger.accounts import AccountType
from core_ledger.exceptions import CorruptStateError, PersistenceError
from core_ledger.ledger import Ledger
from core_ledger.storage import (
    StateStore, InMemoryStateStore, JSONFileStore, SQLiteStore, create_store
)

STATE = {"version": 1, "accounts": [], "note": "ünïcode"}


class TestInMemoryStateStore:

    def setup_method(self):
        self.store = InMemoryStateStore()

    def test_empty(self):
        assert self.store.load() is None

    def test_save_and_load(self):
        self.store.save(STATE)
        assert self.store.load() == STATE

    def test_isolated_from_caller(self):
        """Test later mutation of the saved dict does not leak into the store"""
        state = {"accounts": []}
        self.store.save(state)
        state["accounts"].append("mutated")

        assert self.store.load() == {"accounts": []}

    def test_named_destinations(self):
        self.store.save({"a": 1}, "first")
        self.store.save({"b": 2}, "second")

        assert self.store.load("first") == {"a": 1}
        assert self.store.load("second") == {"b": 2}
        assert self.store.load() is None


class TestJSONFileStore:
    """Test the atomic JSON file store"""

    def test_missing_file(self, tmp_path):
        store = JSONFileStore(tmp_path / "bank_data.json")
        assert store.load() is None

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "bank_data.json"
        store = JSONFileStore(path)
        store.save(STATE)

        assert json.loads(path.read_text(encoding="utf-8")) == STATE
        assert store.load() == STATE

    def test_no_temp_files_left(self, tmp_path):
        store = JSONFileStore(tmp_path / "bank_data.json")
        store.save(STATE)
        store.save({"version": 1})

        assert [p.name for p in tmp_path.iterdir()] == ["bank_data.json"]
        assert store.load() == {"version": 1}

    def test_explicit_destination(self, tmp_path):
        store = JSONFileStore(tmp_path / "default.json")
        other = str(tmp_path / "nested" / "other.json")
        store.save(STATE, other)

        assert store.load() is None
        assert store.load(other) == STATE

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "bank_data.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CorruptStateError):
            JSONFileStore(path).load()

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "bank_data.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(CorruptStateError):
            JSONFileStore(path).load()

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "file.txt"
        blocker.write_text("x", encoding="utf-8")
        store = JSONFileStore(blocker / "bank_data.json")

        with pytest.raises(PersistenceError):
            store.save(STATE)

    def test_unserializable_state(self, tmp_path):
        store = JSONFileStore(tmp_path / "bank_data.json")
        with pytest.raises(PersistenceError):
            store.save({"value": object()})
        assert store.load() is None


class TestSQLiteStore:
    """Test the SQLite store"""

    def setup_method(self):
        self.store = SQLiteStore()

    def teardown_method(self):
        self.store.close()

    def test_empty(self):
        assert self.store.load() is None

    def test_save_overwrites(self):
        self.store.save(STATE)
        self.store.save({"version": 2})
        assert self.store.load() == {"version": 2}

    def test_named_destinations(self):
        self.store.save({"a": 1}, "first")
        self.store.save({"b": 2}, "second")

        assert self.store.load("first") == {"a": 1}
        assert self.store.load("second") == {"b": 2}

    def test_file_database(self, tmp_path):
        path = tmp_path / "ledger.db"
        store = SQLiteStore(path)
        store.save(STATE)
        store.close()

        reopened = SQLiteStore(path)
        try:
            assert reopened.load() == STATE
        finally:
            reopened.close()

    def test_unserializable_state(self):
        with pytest.raises(PersistenceError):
            self.store.save({"value": object()})


class TestCreateStore:

    def test_backends(self, tmp_path):
        json_store = create_store("json", str(tmp_path / "state.json"))
        sqlite_store = create_store("sqlite", str(tmp_path / "state.db"))

        assert isinstance(json_store, JSONFileStore)
        assert isinstance(sqlite_store, SQLiteStore)
        assert isinstance(sqlite_store, StateStore)
        sqlite_store.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store("postgres", "db")


class TestLedgerPersistence:
    """Test saving and loading a whole ledger"""

    @pytest.fixture(params=["memory", "json", "sqlite"])
    def store(self, request, tmp_path):
        if request.param == "memory":
            store = InMemoryStateStore()
        elif request.param == "json":
            store = JSONFileStore(tmp_path / "bank_data.json")
        else:
            store = SQLiteStore(tmp_path / "ledger.db")
        yield store
        store.close()

    def test_save_and_load(self, store, ledger, credentials, ledger_config, clock):
        asha = ledger.create_account("Asha", AccountType.SAVINGS, "1234", 250)
        bob = ledger.create_account("Bob", AccountType.CURRENT, "5678", 100)
        ledger.transfer(asha.account_number, bob.account_number, Decimal("12.34"))

        ledger.save_to(store)
        restored = Ledger.load_from(store, credentials, config=ledger_config, clock=clock)

        assert restored.export_state() == ledger.export_state()
        assert restored.get_account(bob.account_number).balance == Decimal("112.34")
        assert restored.verify_pin(asha.account_number, "1234")

    def test_nothing_saved(self, store, credentials, ledger_config):
        assert Ledger.load_from(store, credentials, config=ledger_config) is None
