"""
Pydantic schemas for API requests and responses
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field

from ..loans import Installment, LoanPlan
from ..delinquency import AccrualResult
from ..reminders import ReminderResult


class InstallmentModel(BaseModel):
    installment_number: int
    due_date: str
    principal_amount: str = Field(..., description="Decimal amount as string")
    interest_amount: str
    total_amount: str
    remaining_principal: str
    paid_amount: str
    late_fee: str
    days_overdue: int
    status: str
    display_status: str

    @classmethod
    def from_installment(cls, installment: Installment) -> 'InstallmentModel':
        return cls(
            installment_number=installment.installment_number,
            due_date=installment.due_date.isoformat(),
            principal_amount=str(installment.principal_amount),
            interest_amount=str(installment.interest_amount),
            total_amount=str(installment.total_amount),
            remaining_principal=str(installment.remaining_principal),
            paid_amount=str(installment.paid_amount),
            late_fee=str(installment.late_fee),
            days_overdue=installment.days_overdue,
            status=installment.status.value,
            display_status=installment.display_status
        )


class LoanPlanModel(BaseModel):
    interest_rate: str
    min_amount: str
    max_amount: str
    min_duration: int
    max_duration: int

    def to_plan(self) -> LoanPlan:
        return LoanPlan(
            interest_rate=self.interest_rate,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            min_duration=self.min_duration,
            max_duration=self.max_duration
        )


class LoanQuoteRequest(BaseModel):
    amount: str = Field(..., description="Principal as a decimal string")
    interest_rate: Optional[str] = Field(None, description="Annual rate in percent")
    duration_months: Optional[int] = None
    plan: Optional[LoanPlanModel] = None
    start_date: Optional[str] = None  # ISO date, defaults to today


class JobRequest(BaseModel):
    as_of_date: Optional[str] = None  # ISO date override for backfills


class AccrualResultModel(BaseModel):
    as_of_date: str
    scanned_count: int
    updated_count: int
    settled_count: int
    notifications_emitted: int
    severe_events: int
    failed_ids: List[str]

    @classmethod
    def from_result(cls, result: AccrualResult) -> 'AccrualResultModel':
        return cls(
            as_of_date=result.as_of.isoformat(),
            scanned_count=result.scanned_count,
            updated_count=result.updated_count,
            settled_count=result.settled_count,
            notifications_emitted=result.notifications_emitted,
            severe_events=result.severe_events,
            failed_ids=result.failed_ids
        )


class ReminderResultModel(BaseModel):
    as_of_date: str
    scanned_count: int
    sent_count: int
    failed_count: int

    @classmethod
    def from_result(cls, result: ReminderResult) -> 'ReminderResultModel':
        return cls(
            as_of_date=result.as_of.isoformat(),
            scanned_count=result.scanned_count,
            sent_count=result.sent_count,
            failed_count=result.failed_count
        )


def parse_date(value: Optional[str]) -> date:
    """Parse an optional ISO date, defaulting to today at the trigger surface"""
    return date.fromisoformat(value) if value else date.today()
