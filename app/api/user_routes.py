from fastapi import APIRouter, Depends, UploadFile, File, status
from typing import Optional, Dict, Any, List
import logging

from app.services.auth_service import auth_service
from app.services.document_service import DocumentService, document_service
from app.services.verification_service import VerificationService, verification_service
from app.schemas import ProfileUpdate, KycSimplifiedRequest
from app.core.auth_dependencies import get_current_user, get_admin_user
from app.database.models import User
from app.helpers.response_builder import build_user_response

router = APIRouter(prefix="/users", tags=["Users"])

logger = logging.getLogger(__name__)


def get_document_service() -> DocumentService:
    return document_service


def get_verification_service() -> VerificationService:
    return verification_service


# Lists all users, newest first (admin)
@router.get("")
async def list_users(admin: User = Depends(get_admin_user)) -> List[Dict[str, Any]]:
    return [build_user_response(u) for u in await auth_service.list_users()]


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return build_user_response(current_user)


@router.put("/profile")
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user)
) -> Dict[str, Any]:
    user = await auth_service.update_profile(current_user, profile)
    return build_user_response(user)


# Uploads any of the three KYC files; review starts once all three are on file
@router.post("/documents", status_code=status.HTTP_200_OK)
async def upload_documents(
    aadhar_card: Optional[UploadFile] = File(None),
    pan_card: Optional[UploadFile] = File(None),
    income_proof: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    documents: DocumentService = Depends(get_document_service),
    verification: VerificationService = Depends(get_verification_service)
) -> Dict[str, Any]:
    stored = await documents.store_documents({
        "aadhar_card": aadhar_card,
        "pan_card": pan_card,
        "income_proof": income_proof,
    })
    user = await verification.submit_files(current_user, stored)
    return {
        "message": "Documents uploaded successfully",
        "verification_status": user.verification_status.value,
        "documents": user.documents.display_names(),
    }


# KYC by reference numbers instead of file uploads
@router.post("/kyc-simplified")
async def submit_simplified_kyc(
    request_data: KycSimplifiedRequest,
    current_user: User = Depends(get_current_user),
    verification: VerificationService = Depends(get_verification_service)
) -> Dict[str, Any]:
    user = await verification.submit_reference_ids(current_user, request_data)
    return {
        "message": "KYC details submitted successfully",
        "verification_status": user.verification_status.value,
    }


@router.put("/{user_id}/make-admin")
async def make_admin(user_id: str, admin: User = Depends(get_admin_user)) -> Dict[str, Any]:
    user = await auth_service.make_admin(user_id)
    logger.info("Admin %s promoted user %s", admin.id, user.id)
    return {
        "message": "User promoted to admin",
        "user": build_user_response(user),
    }
