from fastapi import APIRouter, Depends, status
from typing import Dict, Any, List, Optional
import logging

from app.services.loan_service import LoanApplicationService, loan_application_service
from app.schemas import LoanApplicationRequest, LoanRejectRequest, LoanCalculatorRequest
from app.core.auth_dependencies import get_current_user, get_admin_user
from app.database.models import User
from app.helpers.response_builder import build_loan_response, build_loan_list_response

logger = logging.getLogger(__name__)

# Returns the loan application service instance
def get_loan_application_service() -> LoanApplicationService:
    return loan_application_service

router = APIRouter(prefix="/loans", tags=["Loans"])

# Submits a new loan application for the authenticated borrower
@router.post("", status_code=status.HTTP_201_CREATED)
async def apply_for_loan(
    request_data: LoanApplicationRequest,
    current_user: User = Depends(get_current_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> Dict[str, Any]:
    loan = await service.apply_for_loan(request_data, current_user)
    return {
        "loan": build_loan_response(loan, include_interest_rate=current_user.is_admin),
        "message": "Loan application submitted successfully. Your application is being reviewed.",
        "verification_status": current_user.verification_status.value,
    }

# Lists every loan, newest first (admin)
@router.get("")
async def get_all_loans(
    admin: User = Depends(get_admin_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> List[Dict[str, Any]]:
    return await service.with_owners(await service.list_all_loans())

# Lists pending loans, oldest first (admin)
@router.get("/pending")
async def get_pending_loans(
    admin: User = Depends(get_admin_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> List[Dict[str, Any]]:
    return await service.with_owners(await service.list_pending_loans())

# Lists the authenticated borrower's loans
@router.get("/me")
async def get_my_loans(
    current_user: User = Depends(get_current_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> List[Dict[str, Any]]:
    loans = await service.list_user_loans(current_user)
    return build_loan_list_response(loans, include_interest_rate=current_user.is_admin)

# EMI estimate and repayment schedule for a prospective loan
@router.post("/calculator")
async def calculate_loan(
    request_data: LoanCalculatorRequest,
    current_user: User = Depends(get_current_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> Dict[str, Any]:
    return service.calculate(request_data.amount, request_data.term)

# Retrieves a single loan; the interest rate is hidden from non-admins
@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    current_user: User = Depends(get_current_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> Dict[str, Any]:
    loan = await service.get_loan(loan_id, current_user)
    return build_loan_response(loan, include_interest_rate=current_user.is_admin)

# Approves a pending loan and generates its EMI schedule (admin)
@router.put("/{loan_id}/approve")
async def approve_loan(
    loan_id: str,
    admin: User = Depends(get_admin_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> Dict[str, Any]:
    result = await service.approve_loan(loan_id, admin)
    return {
        "loan": build_loan_response(result["loan"], include_interest_rate=True),
        "emis": result["emis"],
    }

# Rejects a pending loan with a reason (admin)
@router.put("/{loan_id}/reject")
async def reject_loan(
    loan_id: str,
    request_data: Optional[LoanRejectRequest] = None,
    admin: User = Depends(get_admin_user),
    service: LoanApplicationService = Depends(get_loan_application_service)
) -> Dict[str, Any]:
    loan = await service.reject_loan(loan_id, request_data.rejection_reason if request_data else None, admin)
    return build_loan_response(loan, include_interest_rate=True)
