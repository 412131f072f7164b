from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from typing import Optional, Dict, Any, List
from datetime import datetime
import logging

from app.services.verification_service import VerificationService, verification_service
from app.services.document_service import document_service
from app.services.report_service import report_service
from app.services.audit_service import audit_service
from app.schemas import VerificationUpdateRequest, QuickVerifyRequest
from app.core.auth_dependencies import get_admin_user
from app.core.exceptions import ValidationError
from app.database.models import User
from app.helpers.response_builder import build_user_response

router = APIRouter(prefix="/admin", tags=["Admin"])

logger = logging.getLogger(__name__)


def get_verification_service() -> VerificationService:
    return verification_service


# Users awaiting review, borrowers with pending loans first
@router.get("/pending-verifications")
async def get_pending_verifications(
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
) -> List[Dict[str, Any]]:
    return await service.list_verification_candidates()


@router.get("/verifications")
async def get_verifications(
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
) -> List[Dict[str, Any]]:
    return await service.list_verification_candidates()


@router.get("/user-documents/{user_id}")
async def get_user_documents(
    user_id: str,
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
) -> Dict[str, Any]:
    return await service.get_user_documents(user_id)


# Streams an uploaded KYC file back to the reviewing admin
@router.get("/documents/{user_id}/{filename}")
async def get_document_file(
    user_id: str,
    filename: str,
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
):
    document = await service.get_document_file(user_id, filename)
    path = document_service.resolve_path(document)
    return FileResponse(path, filename=document.filename)


@router.put("/verify-user/{user_id}")
async def verify_user(
    user_id: str,
    request_data: VerificationUpdateRequest,
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
) -> Dict[str, Any]:
    user = await service.update_verification(user_id, request_data.status, request_data.notes, admin)
    return {
        "message": f"User verification status updated to {user.verification_status.value}",
        "user": build_user_response(user),
    }


@router.post("/quick-verify")
async def quick_verify_user(
    request_data: QuickVerifyRequest,
    admin: User = Depends(get_admin_user),
    service: VerificationService = Depends(get_verification_service)
) -> Dict[str, Any]:
    user = await service.quick_verify(request_data.user_id, admin)
    return {
        "message": "User verified successfully",
        "user": build_user_response(user),
    }


@router.get("/stats")
async def get_admin_stats(admin: User = Depends(get_admin_user)) -> Dict[str, Any]:
    return await report_service.admin_stats()


def _parse_day(value: str, field: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"Invalid {field} format, expected YYYY-MM-DD")


@router.get("/audit-logs")
async def list_audit_logs(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=1000),
    action: Optional[str] = Query(default=None),
    actor: Optional[str] = Query(default=None),
    acted: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    admin: User = Depends(get_admin_user)
) -> Dict[str, Any]:
    filters: Dict[str, Any] = {"action": action, "actor": actor, "acted": acted, "status": status}

    if start_date:
        filters["start_date"] = _parse_day(start_date, "start_date")
    if end_date:
        # inclusive of the whole end day
        filters["end_date"] = _parse_day(end_date, "end_date").replace(
            hour=23, minute=59, second=59, microsecond=999999
        )

    return await audit_service.get_audits(skip=skip, limit=limit, filters=filters)
