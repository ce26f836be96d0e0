"""
Test suite for storage backends

Tests the in-memory and SQLite document stores, atomic writes and
storage URL parsing.
"""

import pytest
import tempfile
from pathlib import Path

from ngna_soro.storage import InMemoryStorage, SQLiteStorage, create_storage


test_data = {
    "id": "loan-1_1",
    "loan_id": "loan-1",
    "status": "pending",
    "total_amount": "10661.85",
    "days_overdue": 0
}


def exercise_crud(storage):
    storage.save("schedules", "loan-1_1", test_data)
    assert storage.load("schedules", "loan-1_1") == test_data
    assert storage.load("schedules", "missing") is None

    storage.save("schedules", "loan-1_2", dict(test_data, id="loan-1_2", status="overdue"))
    assert len(storage.load_all("schedules")) == 2
    assert storage.count("schedules") == 2

    results = storage.find("schedules", {"loan_id": "loan-1", "status": "overdue"})
    assert [r["id"] for r in results] == ["loan-1_2"]
    assert storage.find("schedules", {"unknown_field": "x"}) == []

    assert storage.delete("schedules", "loan-1_1")
    assert not storage.delete("schedules", "loan-1_1")
    assert storage.count("schedules") == 1


class TestInMemoryStorage:
    """Test the in-memory backend"""

    def test_basic_operations(self):
        storage = InMemoryStorage()
        exercise_crud(storage)
        storage.close()

    def test_returned_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("schedules", "loan-1_1", test_data)

        loaded = storage.load("schedules", "loan-1_1")
        loaded["status"] = "paid"
        assert storage.load("schedules", "loan-1_1")["status"] == "pending"

    def test_atomic_rollback(self):
        storage = InMemoryStorage()
        storage.save("schedules", "loan-1_1", test_data)

        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("schedules", "loan-1_2", dict(test_data, id="loan-1_2"))
                raise ValueError("Simulated error")

        assert storage.count("schedules") == 1

    def test_save_many(self):
        storage = InMemoryStorage()
        storage.save_many("schedules", [(f"loan-1_{n}", dict(test_data, id=f"loan-1_{n}"))
                                        for n in range(1, 13)])
        assert storage.count("schedules") == 12


class TestSQLiteStorage:
    """Test the SQLite backend"""

    def test_basic_operations(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = SQLiteStorage(Path(temp_dir) / "test.db")
            exercise_crud(storage)
            storage.close()

    def test_data_survives_reopen(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "test.db"
            storage = SQLiteStorage(db_path)
            storage.save("schedules", "loan-1_1", test_data)
            storage.close()

            reopened = SQLiteStorage(db_path)
            assert reopened.load("schedules", "loan-1_1") == test_data
            reopened.close()

    def test_atomic_commit_and_rollback(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = SQLiteStorage(Path(temp_dir) / "test.db")
            storage.save("schedules", "loan-1_1", test_data)

            with storage.atomic():
                storage.save("schedules", "loan-1_2", dict(test_data, id="loan-1_2"))
            assert storage.count("schedules") == 2

            with pytest.raises(ValueError):
                with storage.atomic():
                    storage.save("schedules", "loan-1_3", dict(test_data, id="loan-1_3"))
                    raise ValueError("Simulated error")

            assert storage.count("schedules") == 2
            assert storage.load("schedules", "loan-1_3") is None
            storage.close()

    def test_rollback_of_new_table(self):
        storage = SQLiteStorage()
        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("fresh_table", "a", {"id": "a"})
                raise ValueError("Simulated error")

        assert storage.count("fresh_table") == 0
        storage.save("fresh_table", "b", {"id": "b"})
        assert storage.count("fresh_table") == 1


class TestCreateStorage:
    """Test storage URL parsing"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = create_storage(f"sqlite:///{temp_dir}/loans.db")
            assert isinstance(storage, SQLiteStorage)
            storage.save("loans", "loan-1", {"id": "loan-1"})
            assert (Path(temp_dir) / "loans.db").exists()
            storage.close()

    def test_in_memory_sqlite_url(self):
        storage = create_storage("sqlite://")
        assert isinstance(storage, SQLiteStorage)
        assert storage.db_path == ":memory:"

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/loans")
