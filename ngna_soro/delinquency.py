"""
Delinquency Accrual Module

Daily batch over overdue installments: computes days overdue and the tiered
late fee, moves pending installments to overdue, alerts clients on threshold
days and records severe delinquencies in the audit trail.

Late fees are recomputed from the outstanding amount on every run and never
compound, so running the job twice for the same date gives the same result.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
import uuid

from .loans import LoanRepository, InstallmentStatus, OverdueInstallment
from .notifications import NotificationEngine, NotificationType, NotificationPriority
from .audit import AuditTrail, AuditEventType, AuditSeverity
from .cache import CacheInterface
from .exceptions import TransientPersistenceError
from .logging_config import get_logger, log_action
from .utils import round_money, days_between, to_decimal, ZERO


@dataclass(frozen=True)
class LateFeePolicy:
    """
    Tiered late fee on the outstanding amount.

    Days 0..grace_period_days carry no fee, days up to tier1_last_day carry
    tier1_rate, anything later carries tier2_rate.
    """
    grace_period_days: int = 7
    tier1_last_day: int = 30
    tier1_rate: Decimal = Decimal("0.05")
    tier2_rate: Decimal = Decimal("0.10")

    def __post_init__(self):
        if self.grace_period_days < 0 or self.tier1_last_day < self.grace_period_days:
            raise ValueError("Late fee tiers must satisfy 0 <= grace period <= tier 1 last day")
        object.__setattr__(self, "tier1_rate", to_decimal(self.tier1_rate))
        object.__setattr__(self, "tier2_rate", to_decimal(self.tier2_rate))

    def rate_for(self, days_overdue: int) -> Decimal:
        if days_overdue <= self.grace_period_days:
            return ZERO
        if days_overdue <= self.tier1_last_day:
            return self.tier1_rate
        return self.tier2_rate

    def late_fee(self, amount_due: Decimal, days_overdue: int) -> Decimal:
        """Fee for the current tier, rounded half-up to 2 decimals"""
        amount_due = max(ZERO, to_decimal(amount_due))
        return round_money(amount_due * self.rate_for(days_overdue))


def days_overdue(due_date: date, as_of: date) -> int:
    """Whole days past the due date, 0 when not yet due"""
    return max(0, days_between(due_date, as_of))


@dataclass
class AccrualResult:
    """Summary of one accrual run"""
    as_of: date
    scanned_count: int = 0
    updated_count: int = 0
    settled_count: int = 0  # Paid while the run was in progress
    notifications_emitted: int = 0
    severe_events: int = 0
    failed_ids: List[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_ids)


class DelinquencyProcessor:
    """Runs the daily delinquency accrual"""

    def __init__(
        self,
        repository: LoanRepository,
        notification_engine: NotificationEngine,
        audit_trail: AuditTrail,
        policy: Optional[LateFeePolicy] = None,
        notification_threshold_days: Iterable[int] = (1, 7, 30),
        severe_delinquency_days: int = 30,
        currency_label: str = "FCFA",
        cache: Optional[CacheInterface] = None
    ):
        self.repository = repository
        self.notifications = notification_engine
        self.audit_trail = audit_trail
        self.policy = policy or LateFeePolicy()
        self.notification_threshold_days = frozenset(notification_threshold_days)
        self.severe_delinquency_days = severe_delinquency_days
        self.currency_label = currency_label
        self.cache = cache
        self.logger = get_logger("ngna_soro.delinquency")

    def assess(self, item: OverdueInstallment, as_of: date) -> Tuple[int, Decimal]:
        """Days overdue and late fee of one installment on a date"""
        installment = item.installment
        days = days_overdue(installment.due_date, as_of)
        return days, self.policy.late_fee(installment.amount_due, days)

    def run_daily_accrual(self, as_of: date) -> AccrualResult:
        """
        Re-evaluate every overdue installment as of a date.

        Args:
            as_of: Business date of the run; never read from the clock here

        Returns:
            AccrualResult with counts; failed_ids lists rows that failed and
            will be retried on the next run

        Raises:
            TransientPersistenceError: if the overdue set cannot be read
        """
        run_id = str(uuid.uuid4())
        result = AccrualResult(as_of=as_of)

        try:
            items = self.repository.list_overdue_installments(as_of)
        except TransientPersistenceError:
            self.logger.error(f"Accrual run {run_id} aborted: overdue installments unavailable",
                              exc_info=True)
            raise

        result.scanned_count = len(items)

        for item in items:
            installment = item.installment
            days, fee = self.assess(item, as_of)

            # Status flips as soon as the due date has passed, grace period included
            try:
                updated = self.repository.update_installment(
                    installment.id, InstallmentStatus.OVERDUE, days, fee
                )
            except Exception:
                self.logger.error(f"Failed to update installment {installment.id}", exc_info=True)
                result.failed_ids.append(installment.id)
                continue
            if updated is None:
                self.logger.info(f"Installment {installment.id} was paid during the run")
                result.settled_count += 1
                continue
            result.updated_count += 1

            if installment.status == InstallmentStatus.PENDING:
                log_action(
                    self.logger, "info", f"Installment {installment.id} is now overdue",
                    user_id=item.client_user_id, action="installment_overdue",
                    resource=installment.id, correlation_id=run_id
                )

            if days in self.notification_threshold_days:
                if self._notify_client(item, days, fee):
                    result.notifications_emitted += 1

            if days > self.severe_delinquency_days:
                if self._record_severe(item, days, fee, run_id):
                    result.severe_events += 1

        if self.cache:
            self.cache.invalidate_prefix("schedule:")

        self._record_run(result, run_id)
        return result

    def _notify_client(self, item: OverdueInstallment, days: int, fee: Decimal) -> bool:
        installment = item.installment
        if not item.client_user_id:
            self.logger.warning(f"No user to notify for installment {installment.id}")
            return False

        message = (
            f"Votre échéance n°{installment.installment_number} de "
            f"{installment.amount_due} {self.currency_label} pour le prêt "
            f"#{installment.loan_id[:8]} est en retard de {days} jour(s)."
        )
        if fee > ZERO:
            message += f" Pénalité de retard: {fee} {self.currency_label}."

        try:
            notification_id = self.notifications.notify(
                user_id=item.client_user_id,
                title="Paiement en retard",
                message=message,
                action_link=f"/loans/{installment.loan_id}",
                notification_type=NotificationType.PAYMENT_OVERDUE,
                priority=NotificationPriority.HIGH if days >= 30 else NotificationPriority.MEDIUM,
                dedupe_key=f"overdue:{installment.id}:{days}",
                metadata={"installment_id": installment.id, "days_overdue": days}
            )
        except Exception:
            # Delivery problems never block the row update or later rows
            self.logger.warning(f"Overdue notification failed for installment {installment.id}",
                                exc_info=True)
            return False
        return notification_id is not None

    def _record_severe(self, item: OverdueInstallment, days: int, fee: Decimal, run_id: str) -> bool:
        installment = item.installment
        try:
            self.audit_trail.log_event(
                AuditEventType.SEVERE_DELINQUENCY,
                "installment",
                installment.id,
                {
                    "loan_id": installment.loan_id,
                    "client_id": item.client_id,
                    "sfd_id": item.sfd_id,
                    "days_overdue": days,
                    "amount_due": installment.amount_due,
                    "late_fee": fee,
                    "run_id": run_id
                },
                "system",
                AuditSeverity.HIGH
            )
        except Exception:
            self.logger.error(f"Could not audit severe delinquency of {installment.id}", exc_info=True)
            return False
        return True

    def _record_run(self, result: AccrualResult, run_id: str) -> None:
        summary = {
            "as_of": result.as_of,
            "scanned_count": result.scanned_count,
            "updated_count": result.updated_count,
            "settled_count": result.settled_count,
            "notifications_emitted": result.notifications_emitted,
            "severe_events": result.severe_events,
            "failed_ids": result.failed_ids
        }
        level = "warning" if result.partial_failure else "info"
        log_action(self.logger, level, "Daily accrual run completed",
                   action="accrual_run_completed", correlation_id=run_id,
                   extra={k: str(v) if isinstance(v, date) else v for k, v in summary.items()})
        try:
            self.audit_trail.log_event(
                AuditEventType.ACCRUAL_RUN_COMPLETED,
                "job",
                run_id,
                summary,
                "system",
                AuditSeverity.WARNING if result.partial_failure else AuditSeverity.INFO
            )
        except Exception:
            self.logger.error(f"Could not audit accrual run {run_id}", exc_info=True)

    def has_severe_delinquency(self, client_id: str, as_of: date) -> bool:
        """
        Check whether any of a client's loans is severely delinquent.

        New loan applications are refused while this holds.
        """
        for loan in self.repository.get_client_loans(client_id):
            for installment in self.repository.list_installments(loan.id):
                if installment.status == InstallmentStatus.PAID or installment.amount_due == ZERO:
                    continue
                if days_overdue(installment.due_date, as_of) > self.severe_delinquency_days:
                    return True
        return False
