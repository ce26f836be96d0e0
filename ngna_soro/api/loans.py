"""
Loan schedule endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .system import LoanSystem, get_loan_system, to_http_exception
from .schemas import InstallmentModel, LoanQuoteRequest, parse_date
from ..exceptions import NgnaSoroError
from ..loans import quote_loan


router = APIRouter()


@router.post("/quote")
async def quote(request: LoanQuoteRequest):
    """Simulate repayment of a prospective loan"""
    try:
        result = quote_loan(
            principal=request.amount,
            annual_rate_percent=request.interest_rate,
            duration_months=request.duration_months,
            plan=request.plan.to_plan() if request.plan else None,
            start_date=parse_date(request.start_date)
        )
    except (NgnaSoroError, ValueError) as e:
        raise to_http_exception(e)

    return {
        "amount": str(result.principal),
        "interest_rate": str(result.annual_interest_rate),
        "duration_months": result.duration_months,
        "monthly_payment": str(result.monthly_payment),
        "total_repayment": str(result.total_repayment),
        "total_interest": str(result.total_interest),
        "schedule": [InstallmentModel.from_installment(i) for i in result.schedule]
    }


@router.post("/{loan_id}/schedule", status_code=status.HTTP_201_CREATED)
async def generate_schedule(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Generate the payment schedule of a disbursed loan"""
    try:
        schedule = system.schedule_service.generate_for_loan(loan_id)
    except NgnaSoroError as e:
        raise to_http_exception(e)

    return {
        "loan_id": loan_id,
        "total_installments": len(schedule),
        "monthly_payment": str(schedule[0].total_amount),
        "message": "Payment schedule generated successfully"
    }


@router.get("/{loan_id}/schedule")
async def get_schedule(
    loan_id: str,
    system: LoanSystem = Depends(get_loan_system)
):
    """Get the stored schedule of a loan"""
    cache_key = f"schedule:{loan_id}"
    cached = system.cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        installments = system.schedule_service.get_schedule(loan_id)
    except NgnaSoroError as e:
        raise to_http_exception(e)

    if not installments:
        raise HTTPException(status_code=404, detail=f"No schedule for loan {loan_id}")

    response = {
        "loan_id": loan_id,
        "installments": [InstallmentModel.from_installment(i).dict() for i in installments]
    }
    system.cache.set(cache_key, response)
    return response
