"""
Loan Module

Loan and installment records, the fixed-payment amortization schedule
generator, loan quotes against SFD loan plans, and the persistence layer for
loans and their payment schedules.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .cache import CacheInterface
from .exceptions import (
    InvalidArgumentError, InvalidLoanStateError, LoanNotFoundError,
    TransientPersistenceError
)
from .logging_config import get_logger, log_action
from .utils import to_decimal, round_money, add_months, as_date, ZERO, Numeric


class LoanStatus(Enum):
    """Loan lifecycle states"""
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"


# A schedule can only be built once funds have left the SFD
SCHEDULABLE_STATUSES = (LoanStatus.DISBURSED, LoanStatus.ACTIVE)


class InstallmentStatus(Enum):
    """Installment states; pending -> overdue is one-way"""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass
class Loan(StorageRecord):
    """SFD loan granted to a client"""
    client_id: str
    principal: Decimal
    annual_interest_rate: Decimal  # Percent, e.g. 12 for 12%
    duration_months: int
    status: LoanStatus = LoanStatus.PENDING
    client_user_id: Optional[str] = None  # Platform user that receives notifications
    sfd_id: Optional[str] = None
    disbursed_at: Optional[datetime] = None

    def __post_init__(self):
        self.principal = to_decimal(self.principal)
        self.annual_interest_rate = to_decimal(self.annual_interest_rate)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['status'] = self.status.value
        result['disbursed_at'] = self.disbursed_at.isoformat() if self.disbursed_at else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = dict(data)
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        data['status'] = LoanStatus(data['status'])
        data['principal'] = Decimal(data['principal'])
        data['annual_interest_rate'] = Decimal(data['annual_interest_rate'])
        if data.get('disbursed_at'):
            data['disbursed_at'] = datetime.fromisoformat(data['disbursed_at'])
        return cls(**data)


@dataclass
class Installment:
    """One scheduled payment in a loan's amortization table"""
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    remaining_principal: Decimal
    loan_id: Optional[str] = None
    id: Optional[str] = None
    paid_amount: Decimal = ZERO
    late_fee: Decimal = ZERO
    days_overdue: int = 0
    status: InstallmentStatus = InstallmentStatus.PENDING

    @property
    def amount_due(self) -> Decimal:
        """Outstanding amount, never negative"""
        return max(ZERO, self.total_amount - self.paid_amount)

    @property
    def display_status(self) -> str:
        """Status annotated with partial payments for schedule views"""
        if self.status == InstallmentStatus.PAID or self.paid_amount >= self.total_amount:
            return "paid"
        if self.paid_amount > ZERO:
            return "partial"
        return self.status.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "installment_number": self.installment_number,
            "due_date": self.due_date.isoformat(),
            "principal_amount": str(self.principal_amount),
            "interest_amount": str(self.interest_amount),
            "total_amount": str(self.total_amount),
            "remaining_principal": str(self.remaining_principal),
            "paid_amount": str(self.paid_amount),
            "late_fee": str(self.late_fee),
            "days_overdue": self.days_overdue,
            "status": self.status.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Installment':
        return cls(
            id=data.get("id"),
            loan_id=data.get("loan_id"),
            installment_number=int(data["installment_number"]),
            due_date=date.fromisoformat(data["due_date"]),
            principal_amount=Decimal(data["principal_amount"]),
            interest_amount=Decimal(data["interest_amount"]),
            total_amount=Decimal(data["total_amount"]),
            remaining_principal=Decimal(data["remaining_principal"]),
            paid_amount=Decimal(data.get("paid_amount", "0")),
            late_fee=Decimal(data.get("late_fee", "0")),
            days_overdue=int(data.get("days_overdue", 0)),
            status=InstallmentStatus(data.get("status", InstallmentStatus.PENDING.value))
        )


@dataclass
class LoanPlan:
    """SFD loan product limits used when quoting"""
    interest_rate: Decimal
    min_amount: Decimal
    max_amount: Decimal
    min_duration: int
    max_duration: int
    name: str = ""


@dataclass
class LoanQuote:
    """Repayment simulation for a prospective loan"""
    principal: Decimal
    annual_interest_rate: Decimal
    duration_months: int
    monthly_payment: Decimal
    total_repayment: Decimal
    total_interest: Decimal
    schedule: List[Installment] = field(default_factory=list)


def _validate_terms(principal: Decimal, annual_rate: Decimal, duration_months: int) -> None:
    if principal <= ZERO:
        raise InvalidArgumentError(f"Principal must be positive, got {principal}")
    if isinstance(duration_months, bool) or not isinstance(duration_months, int) or duration_months < 1:
        raise InvalidArgumentError(f"Duration must be at least 1 month, got {duration_months}")
    if annual_rate < ZERO:
        raise InvalidArgumentError(f"Interest rate cannot be negative, got {annual_rate}")


def _unrounded_payment(principal: Decimal, monthly_rate: Decimal, duration_months: int) -> Decimal:
    if monthly_rate == ZERO:
        return principal / Decimal(duration_months)
    # Standard formula: P * r(1+r)^n / ((1+r)^n - 1)
    factor = (Decimal("1") + monthly_rate) ** duration_months
    return principal * monthly_rate * factor / (factor - Decimal("1"))


def monthly_payment(principal: Numeric, annual_rate_percent: Numeric, duration_months: int) -> Decimal:
    """
    Fixed monthly payment for an amortizing loan, rounded to 2 decimals.

    Raises:
        InvalidArgumentError: for non-positive principal, zero duration or negative rate
    """
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate_percent)
    _validate_terms(principal, annual_rate, duration_months)
    monthly_rate = annual_rate / Decimal(12) / Decimal(100)
    return round_money(_unrounded_payment(principal, monthly_rate, duration_months))


def generate_schedule(
    principal: Numeric,
    annual_rate_percent: Numeric,
    duration_months: int,
    start_date: date
) -> List[Installment]:
    """
    Generate an equal-payment amortization schedule.

    The running balance is carried unrounded; interest is rounded half-up to
    2 decimals and the principal part is the rounded payment less interest, so
    every row satisfies total = principal + interest. The final row pays off
    the remaining balance and may differ from the others by a cent. Due dates
    fall on the start date's day of month, or the last day of shorter months.

    Args:
        principal: Disbursed amount
        annual_rate_percent: Annual interest rate in percent
        duration_months: Number of monthly installments
        start_date: Disbursement date

    Returns:
        Installments ordered by installment_number, one per month

    Raises:
        InvalidArgumentError: if the terms or start date are invalid
    """
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate_percent)
    _validate_terms(principal, annual_rate, duration_months)
    if not isinstance(start_date, date):
        raise InvalidArgumentError(f"Start date must be a date, got {start_date!r}")
    start_date = as_date(start_date)

    monthly_rate = annual_rate / Decimal(12) / Decimal(100)
    payment = _unrounded_payment(principal, monthly_rate, duration_months)
    rounded_payment = round_money(payment)

    schedule = []
    remaining = principal
    for number in range(1, duration_months + 1):
        interest = remaining * monthly_rate
        interest_amount = round_money(interest)

        if number == duration_months:
            # Final row pays off whatever balance is left
            principal_amount = round_money(remaining)
            total_amount = principal_amount + interest_amount
            remaining = ZERO
        else:
            remaining = max(ZERO, remaining - (payment - interest))
            principal_amount = rounded_payment - interest_amount
            total_amount = rounded_payment

        schedule.append(Installment(
            installment_number=number,
            due_date=add_months(start_date, number),
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            total_amount=total_amount,
            remaining_principal=round_money(remaining)
        ))

    return schedule


def quote_loan(
    principal: Numeric,
    annual_rate_percent: Optional[Numeric] = None,
    duration_months: Optional[int] = None,
    plan: Optional[LoanPlan] = None,
    start_date: Optional[date] = None
) -> LoanQuote:
    """
    Simulate repayment of a prospective loan.

    When a plan is given its interest rate applies, the duration defaults to
    the plan minimum, and amount and duration must fall inside plan limits.
    """
    principal = to_decimal(principal)

    if plan:
        annual_rate_percent = plan.interest_rate
        duration_months = plan.min_duration if duration_months is None else duration_months
        if principal < to_decimal(plan.min_amount) or principal > to_decimal(plan.max_amount):
            raise InvalidArgumentError(
                f"Amount must be between {plan.min_amount} and {plan.max_amount} for this loan plan"
            )
        if duration_months < plan.min_duration or duration_months > plan.max_duration:
            raise InvalidArgumentError(
                f"Duration must be between {plan.min_duration} and {plan.max_duration} months for this loan plan"
            )

    if annual_rate_percent is None or duration_months is None:
        raise InvalidArgumentError("Interest rate and duration are required without a loan plan")

    schedule = generate_schedule(
        principal, annual_rate_percent, duration_months, start_date or date.today()
    )
    payment = monthly_payment(principal, annual_rate_percent, duration_months)
    total_repayment = sum((i.total_amount for i in schedule), ZERO)

    return LoanQuote(
        principal=principal,
        annual_interest_rate=to_decimal(annual_rate_percent),
        duration_months=duration_months,
        monthly_payment=payment,
        total_repayment=total_repayment,
        total_interest=total_repayment - principal,
        schedule=schedule
    )


@dataclass
class OverdueInstallment:
    """Overdue installment joined with the routing identity of its loan"""
    installment: Installment
    client_id: str
    client_user_id: Optional[str]
    sfd_id: Optional[str] = None


class LoanRepository:
    """Persistence for loans and their payment schedules"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.loans_table = "loans"
        self.schedules_table = "loan_payment_schedules"

    def save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        data = self.storage.load(self.loans_table, loan_id)
        return Loan.from_dict(data) if data else None

    def get_client_loans(self, client_id: str) -> List[Loan]:
        return [Loan.from_dict(d) for d in self.storage.find(self.loans_table, {"client_id": client_id})]

    def has_schedule(self, loan_id: str) -> bool:
        """True when at least one installment exists for the loan"""
        return bool(self.storage.find(self.schedules_table, {"loan_id": loan_id}))

    def insert_installments(self, loan_id: str, installments: List[Installment]) -> None:
        """Persist a whole schedule in one atomic write"""
        records = []
        for installment in sorted(installments, key=lambda i: i.installment_number):
            installment.loan_id = loan_id
            installment.id = installment.id or f"{loan_id}_{installment.installment_number}"
            records.append((installment.id, installment.to_dict()))
        self.storage.save_many(self.schedules_table, records)

    def get_installment(self, installment_id: str) -> Optional[Installment]:
        data = self.storage.load(self.schedules_table, installment_id)
        return Installment.from_dict(data) if data else None

    def list_installments(self, loan_id: str) -> List[Installment]:
        installments = [
            Installment.from_dict(d)
            for d in self.storage.find(self.schedules_table, {"loan_id": loan_id})
        ]
        installments.sort(key=lambda i: i.installment_number)
        return installments

    def _with_loan_identity(self, installments: List[Installment]) -> List[OverdueInstallment]:
        loans: Dict[str, Optional[Loan]] = {}
        joined = []
        for installment in installments:
            if installment.loan_id not in loans:
                loans[installment.loan_id] = self.get_loan(installment.loan_id)
            loan = loans[installment.loan_id]
            joined.append(OverdueInstallment(
                installment=installment,
                client_id=loan.client_id if loan else "",
                client_user_id=loan.client_user_id if loan else None,
                sfd_id=loan.sfd_id if loan else None
            ))
        return joined

    def list_overdue_installments(self, as_of: date) -> List[OverdueInstallment]:
        """Pending or overdue installments due strictly before as_of"""
        try:
            records = (
                self.storage.find(self.schedules_table, {"status": InstallmentStatus.PENDING.value})
                + self.storage.find(self.schedules_table, {"status": InstallmentStatus.OVERDUE.value})
            )
            installments = [Installment.from_dict(d) for d in records]
            installments = [i for i in installments if i.due_date < as_of]
            installments.sort(key=lambda i: (i.due_date, i.loan_id or "", i.installment_number))
            return self._with_loan_identity(installments)
        except Exception as e:
            raise TransientPersistenceError(f"Could not read overdue installments: {e}") from e

    def list_pending_installments_due_between(self, start: date, end: date) -> List[OverdueInstallment]:
        """Pending installments with start <= due_date <= end"""
        try:
            records = self.storage.find(self.schedules_table, {"status": InstallmentStatus.PENDING.value})
            installments = [Installment.from_dict(d) for d in records]
            installments = [i for i in installments if start <= i.due_date <= end]
            installments.sort(key=lambda i: (i.due_date, i.loan_id or "", i.installment_number))
            return self._with_loan_identity(installments)
        except Exception as e:
            raise TransientPersistenceError(
                f"Could not read installments due between {start} and {end}: {e}"
            ) from e

    def update_installment(
        self,
        installment_id: str,
        status: InstallmentStatus,
        days_overdue: int,
        late_fee: Decimal
    ) -> Optional[Installment]:
        """
        Row-scoped update of the delinquency fields.

        Returns None without writing when the installment has been paid since
        it was read; paid installments are never reopened.
        """
        try:
            with self.storage.atomic():
                data = self.storage.load(self.schedules_table, installment_id)
                if data is None:
                    raise TransientPersistenceError(f"Installment {installment_id} not found")
                if data.get("status") == InstallmentStatus.PAID.value:
                    return None
                data["status"] = status.value
                data["days_overdue"] = days_overdue
                data["late_fee"] = str(late_fee)
                self.storage.save(self.schedules_table, installment_id, data)
            return Installment.from_dict(data)
        except TransientPersistenceError:
            raise
        except Exception as e:
            raise TransientPersistenceError(f"Could not update installment {installment_id}: {e}") from e


class ScheduleService:
    """
    Builds and persists the payment schedule of a disbursed loan
    """

    def __init__(
        self,
        repository: LoanRepository,
        audit_trail: AuditTrail,
        cache: Optional[CacheInterface] = None
    ):
        self.repository = repository
        self.audit_trail = audit_trail
        self.cache = cache
        self.logger = get_logger("ngna_soro.loans")

    def generate_for_loan(self, loan_id: str) -> List[Installment]:
        """
        Generate and store the schedule of a loan after disbursement.

        Args:
            loan_id: Loan ID

        Returns:
            The persisted installments

        Raises:
            LoanNotFoundError: if the loan does not exist
            InvalidLoanStateError: if the loan is not disbursed or already has a schedule
            InvalidArgumentError: if the loan terms are invalid
        """
        loan = self.repository.get_loan(loan_id)
        if not loan:
            raise LoanNotFoundError(f"Loan {loan_id} not found")

        if loan.status not in SCHEDULABLE_STATUSES:
            raise InvalidLoanStateError(
                f"Loan must be disbursed or active (current status: {loan.status.value})"
            )
        if not loan.disbursed_at:
            raise InvalidLoanStateError(
                "Loan has not been disbursed yet. Cannot generate schedule without disbursement date."
            )
        if self.repository.has_schedule(loan_id):
            raise InvalidLoanStateError(f"Schedule already exists for loan {loan_id}")

        schedule = generate_schedule(
            loan.principal,
            loan.annual_interest_rate,
            loan.duration_months,
            loan.disbursed_at.date()
        )
        self.repository.insert_installments(loan_id, schedule)

        if self.cache:
            self.cache.invalidate_prefix(f"schedule:{loan_id}")

        self.audit_trail.log_event(
            AuditEventType.LOAN_SCHEDULE_GENERATED,
            "loan",
            loan_id,
            {
                "duration_months": loan.duration_months,
                "total_installments": len(schedule),
                "monthly_payment": schedule[0].total_amount
            },
            loan.client_id
        )
        log_action(
            self.logger, "info", f"Generated schedule with {len(schedule)} installments",
            user_id=loan.client_id, action="loan_schedule_generated", resource=loan_id
        )
        return schedule

    def get_schedule(self, loan_id: str) -> List[Installment]:
        """Stored schedule of a loan ordered by installment number"""
        if not self.repository.get_loan(loan_id):
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return self.repository.list_installments(loan_id)


def new_loan(
    client_id: str,
    principal: Numeric,
    annual_interest_rate: Numeric,
    duration_months: int,
    status: LoanStatus = LoanStatus.PENDING,
    disbursed_at: Optional[datetime] = None,
    client_user_id: Optional[str] = None,
    sfd_id: Optional[str] = None,
    loan_id: Optional[str] = None
) -> Loan:
    """Build a Loan record with fresh id and timestamps"""
    now = datetime.now(timezone.utc)
    return Loan(
        id=loan_id or str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        client_id=client_id,
        principal=to_decimal(principal),
        annual_interest_rate=to_decimal(annual_interest_rate),
        duration_months=duration_months,
        status=status,
        client_user_id=client_user_id,
        sfd_id=sfd_id,
        disbursed_at=disbursed_at
    )
