"""
Test suite for audit module

Tests the hash-chained audit trail, tamper detection and severity filtering.
"""

import pytest
from datetime import datetime, timezone, date
from decimal import Decimal

from ngna_soro.storage import InMemoryStorage
from ngna_soro.audit import AuditTrail, AuditEvent, AuditEventType, AuditSeverity


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def test_metadata_is_json_safe(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.SEVERE_DELINQUENCY,
            entity_type="installment",
            entity_id="loan-1_3",
            previous_hash="",
            current_hash="",
            metadata={"late_fee": Decimal("1000.00"), "due_date": date(2024, 1, 1),
                      "failed_ids": ("a", "b")},
            severity=AuditSeverity.HIGH
        )

        assert event.metadata == {"late_fee": "1000.00", "due_date": "2024-01-01",
                                  "failed_ids": ["a", "b"]}
        event.current_hash = event.calculate_hash()
        assert event.verify_hash()
        assert len(event.current_hash) == 64

    def test_hash_covers_severity(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT002", created_at=now, updated_at=now,
            event_type=AuditEventType.SEVERE_DELINQUENCY,
            entity_type="installment", entity_id="loan-1_3",
            previous_hash="", current_hash="", metadata={}
        )
        event.current_hash = event.calculate_hash()
        event.severity = AuditSeverity.HIGH
        assert not event.verify_hash()

    def test_dict_round_trip(self, audit_trail):
        event = audit_trail.log_event(AuditEventType.LOAN_SCHEDULE_GENERATED, "loan", "loan-1",
                                      {"total_installments": 12}, "client-1")
        restored = AuditEvent.from_dict(event.to_dict())
        assert restored.event_type == AuditEventType.LOAN_SCHEDULE_GENERATED
        assert restored.severity == AuditSeverity.INFO
        assert restored.verify_hash()


class TestAuditTrail:
    """Test hash chaining and integrity verification"""

    def test_events_are_chained(self, audit_trail):
        first = audit_trail.log_event(AuditEventType.LOAN_SCHEDULE_GENERATED, "loan", "loan-1")
        second = audit_trail.log_event(AuditEventType.ACCRUAL_RUN_COMPLETED, "job", "run-1")

        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert audit_trail.count_events() == 2

        result = audit_trail.verify_integrity()
        assert result["valid"]
        assert result["total_events"] == 2

    def test_tampered_metadata_is_detected(self, audit_trail, storage):
        audit_trail.log_event(AuditEventType.SEVERE_DELINQUENCY, "installment", "loan-1_1",
                              {"late_fee": Decimal("1000.00")}, "system", AuditSeverity.HIGH)
        event = audit_trail.log_event(AuditEventType.SEVERE_DELINQUENCY, "installment", "loan-1_2",
                                      {"late_fee": Decimal("500.00")}, "system", AuditSeverity.HIGH)

        record = storage.load("audit_events", event.id)
        record["metadata"]["late_fee"] = "0.00"
        storage.save("audit_events", event.id, record)

        result = audit_trail.verify_integrity()
        assert not result["valid"]
        assert result["hash_errors"][0]["event_id"] == event.id

    def test_deleted_event_breaks_chain(self, audit_trail, storage):
        events = [audit_trail.log_event(AuditEventType.NOTIFICATION_SENT, "notification", f"n-{i}")
                  for i in range(3)]
        storage.delete("audit_events", events[1].id)

        result = audit_trail.verify_integrity()
        assert not result["valid"]
        assert result["chain_breaks"][0]["event_id"] == events[2].id

    def test_chain_continues_after_restart(self, audit_trail, storage):
        first = audit_trail.log_event(AuditEventType.LOAN_SCHEDULE_GENERATED, "loan", "loan-1")

        restarted = AuditTrail(storage)
        second = restarted.log_event(AuditEventType.LOAN_SCHEDULE_GENERATED, "loan", "loan-2")

        assert second.previous_hash == first.current_hash
        assert restarted.verify_integrity()["valid"]

    def test_query_by_entity_and_severity(self, audit_trail):
        audit_trail.log_event(AuditEventType.SEVERE_DELINQUENCY, "installment", "loan-1_1",
                              severity=AuditSeverity.HIGH)
        audit_trail.log_event(AuditEventType.SEVERE_DELINQUENCY, "installment", "loan-1_2",
                              severity=AuditSeverity.HIGH)
        audit_trail.log_event(AuditEventType.NOTIFICATION_FAILED, "notification", "n-1",
                              severity=AuditSeverity.WARNING)

        assert len(audit_trail.get_events_for_entity("installment", "loan-1_1")) == 1
        assert len(audit_trail.get_events_by_type(AuditEventType.SEVERE_DELINQUENCY)) == 2
        assert audit_trail.get_events_by_type(AuditEventType.NOTIFICATION_FAILED,
                                              AuditSeverity.HIGH) == []
