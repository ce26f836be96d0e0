"""
Payment Reminders Module

Sends clients a reminder a few days before an installment falls due.
"""

from datetime import date, timedelta
from dataclasses import dataclass

from .loans import LoanRepository
from .notifications import NotificationEngine, NotificationType, NotificationPriority
from .audit import AuditTrail, AuditEventType
from .logging_config import get_logger, log_action


@dataclass
class ReminderResult:
    """Summary of one reminder run"""
    as_of: date
    scanned_count: int = 0
    sent_count: int = 0
    failed_count: int = 0


class PaymentReminderService:
    """Reminds clients of upcoming installments"""

    def __init__(
        self,
        repository: LoanRepository,
        notification_engine: NotificationEngine,
        audit_trail: AuditTrail,
        reminder_days_before: int = 5,
        currency_label: str = "FCFA"
    ):
        self.repository = repository
        self.notifications = notification_engine
        self.audit_trail = audit_trail
        self.reminder_days_before = reminder_days_before
        self.currency_label = currency_label
        self.logger = get_logger("ngna_soro.reminders")

    def send_due_reminders(self, as_of: date) -> ReminderResult:
        """
        Remind clients of pending installments due within reminder_days_before days.

        Installments whose reminder day was missed are still reminded as long
        as they are not yet due. Each installment is reminded at most once;
        failures are counted and do not stop the run.
        """
        result = ReminderResult(as_of=as_of)
        horizon = as_of + timedelta(days=self.reminder_days_before)
        items = self.repository.list_pending_installments_due_between(as_of, horizon)
        result.scanned_count = len(items)

        for item in items:
            installment = item.installment
            if not item.client_user_id:
                result.failed_count += 1
                continue

            message = (
                f"Votre paiement de {installment.amount_due} {self.currency_label} pour le prêt "
                f"#{installment.loan_id[:8]} est dû le {installment.due_date.strftime('%d/%m/%Y')}. "
                f"Veuillez préparer votre paiement."
            )
            try:
                notification_id = self.notifications.notify(
                    user_id=item.client_user_id,
                    title="Rappel de paiement",
                    message=message,
                    action_link=f"/loans/{installment.loan_id}",
                    notification_type=NotificationType.LOAN_PAYMENT_REMINDER,
                    priority=NotificationPriority.LOW,
                    dedupe_key=f"reminder:{installment.id}",
                    metadata={"installment_id": installment.id}
                )
                if notification_id is None:
                    continue
                self.audit_trail.log_event(
                    AuditEventType.PAYMENT_REMINDER_SENT,
                    "installment",
                    installment.id,
                    {
                        "loan_id": installment.loan_id,
                        "installment_number": installment.installment_number,
                        "due_date": installment.due_date,
                        "amount": installment.amount_due
                    },
                    "system"
                )
            except Exception:
                self.logger.warning(f"Reminder failed for installment {installment.id}", exc_info=True)
                result.failed_count += 1
                continue
            result.sent_count += 1

        log_action(self.logger, "info",
                   f"Processed {result.sent_count} reminders with {result.failed_count} failures",
                   action="payment_reminders_sent", extra={"due_until": horizon.isoformat()})
        return result
