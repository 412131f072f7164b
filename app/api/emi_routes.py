from fastapi import APIRouter, Depends, status
from typing import Dict, Any, List, Optional
import logging

from app.services.emi_service import EmiService, emi_service
from app.schemas import PayEmiRequest, ManualEmiUpdateRequest
from app.core.auth_dependencies import get_current_user, get_admin_user
from app.database.models import User
from app.helpers.response_builder import build_emi_response, build_emi_list_response

logger = logging.getLogger(__name__)

def get_emi_service() -> EmiService:
    return emi_service

router = APIRouter(prefix="/emis", tags=["EMIs"])

# Generates the schedule for an approved loan that has none yet (admin)
@router.post("/generate/{loan_id}", status_code=status.HTTP_201_CREATED)
async def generate_emis(
    loan_id: str,
    admin: User = Depends(get_admin_user),
    service: EmiService = Depends(get_emi_service)
) -> Dict[str, Any]:
    emis = await service.generate_for_loan(loan_id, admin)
    return {
        "message": f"{len(emis)} EMIs generated successfully",
        "emis": build_emi_list_response(emis),
    }

# Lists every EMI by due date (admin)
@router.get("")
async def get_all_emis(
    admin: User = Depends(get_admin_user),
    service: EmiService = Depends(get_emi_service)
) -> List[Dict[str, Any]]:
    return build_emi_list_response(await service.list_all())

# Lists the authenticated borrower's EMIs
@router.get("/me")
async def get_my_emis(
    current_user: User = Depends(get_current_user),
    service: EmiService = Depends(get_emi_service)
) -> List[Dict[str, Any]]:
    return build_emi_list_response(await service.list_for_user(current_user))

# Marks every pending EMI past its due date as overdue (admin)
@router.get("/update-overdue")
async def update_overdue_emis(
    admin: User = Depends(get_admin_user),
    service: EmiService = Depends(get_emi_service)
) -> Dict[str, Any]:
    overdue = await service.update_overdue()
    return {
        "message": f"{len(overdue)} EMIs marked as overdue",
        "overdue_emis": build_emi_list_response(overdue),
    }

# Lists the EMIs of one loan (owner or admin)
@router.get("/loan/{loan_id}")
async def get_loan_emis(
    loan_id: str,
    current_user: User = Depends(get_current_user),
    service: EmiService = Depends(get_emi_service)
) -> List[Dict[str, Any]]:
    return build_emi_list_response(await service.list_for_loan(loan_id, current_user))

# Pays one EMI, adding any late fee
@router.put("/{emi_id}/pay")
async def pay_emi(
    emi_id: str,
    request_data: Optional[PayEmiRequest] = None,
    current_user: User = Depends(get_current_user),
    service: EmiService = Depends(get_emi_service)
) -> Dict[str, Any]:
    payment_id = request_data.payment_id if request_data else None
    emi = await service.pay(emi_id, current_user, payment_id)
    return {
        "message": "EMI paid successfully",
        "emi": build_emi_response(emi),
    }

# Records an offline payment or status correction (admin)
@router.put("/{emi_id}/manual-update")
async def manual_update_emi(
    emi_id: str,
    request_data: ManualEmiUpdateRequest,
    admin: User = Depends(get_admin_user),
    service: EmiService = Depends(get_emi_service)
) -> Dict[str, Any]:
    emi = await service.manual_update(emi_id, request_data, admin)
    return {
        "message": f"EMI status manually updated to {emi.status.value}",
        "emi": build_emi_response(emi),
    }
