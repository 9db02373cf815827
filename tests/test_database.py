"""Tests for DatabaseOperations and database initialization."""

from datetime import datetime, timedelta

import pytest

from freight_learning.database.init_db import check_database, init_database, reset_database
from freight_learning.exceptions import PersistenceError, UnknownTableError


class TestGenericStore:
    """Test suite for the find_one/insert/update contract."""

    def test_insert_then_find(self, db_ops):
        stored = db_ops.insert(
            "ai_knowledge",
            {"customer_id": 7, "key": "reefer", "label": "Reefer", "definition": "refrigerated trailer"},
        )

        assert stored["id"] is not None
        assert stored["scope"] == "customer"
        assert stored["is_active"] is True

        found = db_ops.find_one("ai_knowledge", {"customer_id": 7, "key": "reefer"})
        assert found["definition"] == "refrigerated trailer"

    def test_find_missing(self, db_ops):
        assert db_ops.find_one("ai_knowledge", {"customer_id": 7, "key": "reefer"}) is None

    def test_update_returns_row_count(self, db_ops):
        db_ops.insert("customer_intelligence_profiles", {"customer_id": 7, "preferences": {}})

        assert db_ops.update("customer_intelligence_profiles", {"customer_id": 7}, {"notes": "ships produce"}) == 1
        assert db_ops.update("customer_intelligence_profiles", {"customer_id": 8}, {"notes": "x"}) == 0
        assert db_ops.get_profile(7).notes == "ships produce"

    def test_unknown_table(self, db_ops):
        with pytest.raises(UnknownTableError):
            db_ops.find_one("shipments", {"id": 1})

    def test_constraint_violation(self, db_ops):
        record = {"customer_id": 7, "key": "reefer", "label": "reefer", "definition": "refrigerated trailer"}
        db_ops.insert("ai_knowledge", record)

        with pytest.raises(PersistenceError) as exc_info:
            db_ops.insert("ai_knowledge", record)

        assert exc_info.value.operation == "insert"
        assert exc_info.value.table == "ai_knowledge"


class TestKnowledgeUpsert:
    """Test suite for knowledge reinforcement."""

    def test_missing_confidence_blended_from_default(self, db_ops):
        db_ops.insert(
            "ai_knowledge",
            {"customer_id": 7, "key": "reefer", "label": "reefer", "definition": "cold trailer", "confidence": None},
        )

        entry = db_ops.upsert_knowledge(
            7, "reefer", "refrigerated trailer", 0.9, "explicit",
            blend=lambda existing: (0.5 if existing is None else existing) + 0.1,
        )

        assert entry.confidence == pytest.approx(0.6)
        assert entry.definition == "refrigerated trailer"

    def test_upsert_reactivates(self, db_ops):
        db_ops.insert(
            "ai_knowledge",
            {"customer_id": 7, "key": "reefer", "label": "reefer", "definition": "cold trailer",
             "confidence": 0.7, "is_active": False},
        )

        entry = db_ops.upsert_knowledge(7, "reefer", "cold trailer", 0.9, "explicit", blend=lambda c: c)

        assert entry.is_active is True


class TestUsageEvents:
    """Test suite for the usage event log."""

    def test_since_is_inclusive(self, db_ops):
        base = datetime(2026, 10, 1, 12, 0)
        for offset in (0, 1, 2):
            db_ops.add_usage_event(7, "question_asked", {}, 12, 4, created_at=base + timedelta(days=offset))

        events = db_ops.get_usage_events_since(7, base + timedelta(days=1))

        assert [e.created_at.day for e in events] == [2, 3]


class TestInitDatabase:
    """Test suite for database initialization helpers."""

    def test_memory_database(self, db_ops):
        assert db_ops.check_database() is True

    def test_file_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'nested' / 'learning.db'}"

        init_database(url)

        assert (tmp_path / "nested" / "learning.db").exists()
        assert check_database(url) is True

    def test_reset_clears_data(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'learning.db'}"
        db_ops = init_database(url)
        db_ops.add_correction(7, {"originalText": "a", "correctedText": "b"})

        reset = reset_database(url)

        assert reset.get_corrections(7) == []
