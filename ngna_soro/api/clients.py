"""
Client endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .system import LoanSystem, get_loan_system, to_http_exception
from .schemas import parse_date


router = APIRouter()


@router.get("/{client_id}/eligibility")
async def get_eligibility(
    client_id: str,
    as_of_date: Optional[str] = None,
    system: LoanSystem = Depends(get_loan_system)
):
    """Check whether a client may apply for a new loan"""
    try:
        as_of = parse_date(as_of_date)
    except ValueError as e:
        raise to_http_exception(e)

    severe = system.delinquency_processor.has_severe_delinquency(client_id, as_of)
    return {
        "client_id": client_id,
        "as_of_date": as_of.isoformat(),
        "eligible": not severe,
        "reason": "Severe delinquency on an existing loan" if severe else None
    }
