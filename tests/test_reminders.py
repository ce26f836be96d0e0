"""
Test suite for payment reminders
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, date

from ngna_soro.storage import InMemoryStorage
from ngna_soro.audit import AuditTrail, AuditEventType
from ngna_soro.notifications import NotificationEngine, NotificationChannel, ChannelProvider
from ngna_soro.loans import InstallmentStatus, LoanRepository, LoanStatus, ScheduleService, new_loan
from ngna_soro.reminders import PaymentReminderService


class RejectingProvider(ChannelProvider):
    def send(self, notification):
        return False


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def repository(storage):
    return LoanRepository(storage)


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def notification_engine(storage, audit_trail):
    return NotificationEngine(storage, audit_trail)


@pytest.fixture
def reminders(repository, notification_engine, audit_trail):
    return PaymentReminderService(repository, notification_engine, audit_trail)


@pytest.fixture
def loan(repository, audit_trail):
    """Disbursed 2024-01-15 with installments due on the 15th"""
    loan = new_loan(
        client_id="client-1",
        principal=Decimal("120000"),
        annual_interest_rate=Decimal("12"),
        duration_months=12,
        status=LoanStatus.DISBURSED,
        disbursed_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
        client_user_id="user-1"
    )
    repository.save_loan(loan)
    ScheduleService(repository, audit_trail).generate_for_loan(loan.id)
    return loan


class TestPaymentReminders:
    """Test reminders sent ahead of due dates"""

    def test_reminds_five_days_before(self, reminders, loan, notification_engine, audit_trail):
        result = reminders.send_due_reminders(date(2024, 2, 10))

        assert result.scanned_count == 1
        assert result.sent_count == 1
        assert result.failed_count == 0

        notifications = notification_engine.get_notifications("user-1")
        assert len(notifications) == 1
        assert notifications[0]["title"] == "Rappel de paiement"
        assert notifications[0]["notification_type"] == "loan_payment_reminder"
        assert "10661.85 FCFA" in notifications[0]["message"]
        assert "15/02/2024" in notifications[0]["message"]

        events = audit_trail.get_events_by_type(AuditEventType.PAYMENT_REMINDER_SENT)
        assert len(events) == 1
        assert events[0].entity_id == f"{loan.id}_1"

    def test_nothing_due(self, reminders, loan):
        result = reminders.send_due_reminders(date(2024, 2, 9))
        assert result.scanned_count == 0
        assert result.sent_count == 0

    def test_reminder_sent_once(self, reminders, loan, notification_engine):
        reminders.send_due_reminders(date(2024, 2, 10))
        result = reminders.send_due_reminders(date(2024, 2, 10))

        assert result.scanned_count == 1
        assert result.sent_count == 0
        assert len(notification_engine.get_notifications("user-1")) == 1

    def test_missed_day_is_caught_up(self, reminders, loan, notification_engine):
        """The 2024-02-10 run never happened; the next run still reminds"""
        result = reminders.send_due_reminders(date(2024, 2, 11))

        assert result.scanned_count == 1
        assert result.sent_count == 1
        assert reminders.send_due_reminders(date(2024, 2, 12)).sent_count == 0
        assert len(notification_engine.get_notifications("user-1")) == 1

    def test_past_due_installments_are_not_reminded(self, reminders, loan):
        result = reminders.send_due_reminders(date(2024, 2, 16))
        assert result.scanned_count == 0

    def test_overdue_installments_are_not_reminded(self, reminders, loan, repository):
        repository.update_installment(f"{loan.id}_1", InstallmentStatus.OVERDUE, 1, Decimal("0"))
        result = reminders.send_due_reminders(date(2024, 2, 10))
        assert result.scanned_count == 0

    def test_delivery_failure_is_counted(self, reminders, loan, notification_engine):
        notification_engine.unregister_provider(NotificationChannel.IN_APP)
        notification_engine.register_provider(NotificationChannel.WEBHOOK, RejectingProvider())

        result = reminders.send_due_reminders(date(2024, 2, 10))

        assert result.sent_count == 0
        assert result.failed_count == 1
        assert not notification_engine.already_sent(f"reminder:{loan.id}_1")

    def test_custom_lead_time(self, repository, notification_engine, audit_trail, loan):
        service = PaymentReminderService(repository, notification_engine, audit_trail,
                                         reminder_days_before=1, currency_label="XOF")
        result = service.send_due_reminders(date(2024, 2, 14))

        assert result.sent_count == 1
        assert "XOF" in notification_engine.get_notifications("user-1")[0]["message"]
