"""
Batch job endpoints, triggered by the external scheduler
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .system import LoanSystem, get_loan_system, to_http_exception
from .schemas import JobRequest, AccrualResultModel, ReminderResultModel, parse_date
from ..exceptions import NgnaSoroError


router = APIRouter()


@router.post("/daily-accrual", response_model=AccrualResultModel)
async def run_daily_accrual(
    request: Optional[JobRequest] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """Run the delinquency accrual for a business date, today by default"""
    try:
        as_of = parse_date(request.as_of_date if request else None)
        result = system.delinquency_processor.run_daily_accrual(as_of)
    except (NgnaSoroError, ValueError) as e:
        raise to_http_exception(e)
    return AccrualResultModel.from_result(result)


@router.post("/payment-reminders", response_model=ReminderResultModel)
async def send_payment_reminders(
    request: Optional[JobRequest] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """Remind clients of installments falling due soon"""
    try:
        as_of = parse_date(request.as_of_date if request else None)
        result = system.reminder_service.send_due_reminders(as_of)
    except (NgnaSoroError, ValueError) as e:
        raise to_http_exception(e)
    return ReminderResultModel.from_result(result)
