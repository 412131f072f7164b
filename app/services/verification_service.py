import logging
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.database.models import User, Loan, ReferenceDocument, FileDocument
from app.helpers.response_builder import parse_object_id
from app.schemas import VerificationStatusEnum, LoanStatusEnum, LoanVerificationStatusEnum, KycSimplifiedRequest
from app.services.audit_service import audit_service

logger = logging.getLogger(__name__)

ADMIN_DECISIONS = (
    VerificationStatusEnum.verified,
    VerificationStatusEnum.rejected,
    VerificationStatusEnum.pending,
)

# Review queue order once pending-loan users have been moved to the front
STATUS_PRIORITY = {
    VerificationStatusEnum.pending: 0,
    VerificationStatusEnum.not_submitted: 1,
    VerificationStatusEnum.rejected: 2,
    VerificationStatusEnum.verified: 3,
}

SOURCES = ("document_upload", "kyc_simplified", "admin_review", "quick_verify", "auto_apply", "auto_approve")


class VerificationService:
    """KYC state for users.

    ``transition`` is the only code path that changes a user's verification
    status; every other operation in the app goes through it.
    """

    async def transition(
        self,
        user: User,
        status: VerificationStatusEnum,
        *,
        source: str,
        notes: Optional[str] = None,
        actor: Any = None,
        session=None,
    ) -> User:
        if source not in SOURCES:
            raise ValueError(f"Unknown verification source: {source}")

        previous = user.verification_status
        user.set_verification_status(status, notes)
        await user.save(session=session)

        logger.info("User %s verification %s -> %s (%s)", user.id, previous.value, user.verification_status.value, source)
        await audit_service.record(
            "verification_change",
            actor=actor or user.id,
            acted=user.id,
            source=source,
            previous=previous.value,
            current=user.verification_status.value,
        )
        return user

    async def ensure_verified_for_loan(self, user: User, *, source: str, actor: Any = None, session=None) -> User:
        """Apply the borrower auto-verification policy.

        With AUTO_VERIFY_ON_LOAN on, an unverified borrower is promoted. With it
        off, nothing is promoted and approval requires an already verified user.
        """
        if user.is_verified:
            return user
        if settings.AUTO_VERIFY_ON_LOAN:
            return await self.transition(user, VerificationStatusEnum.verified, source=source, actor=actor, session=session)
        if source == "auto_approve":
            raise ConflictError("User must be verified before loan approval")
        return user

    async def _get_user(self, user_id: str) -> User:
        user = await User.get(parse_object_id(user_id, "User"))
        if not user:
            raise NotFoundError("User not found")
        return user

    # Records uploaded files; the user enters review once all three slots are filled
    async def submit_files(self, user: User, stored: Dict[str, FileDocument]) -> User:
        for slot, document in stored.items():
            setattr(user.documents, slot, document)

        if user.documents.is_complete():
            return await self.transition(user, VerificationStatusEnum.pending, source="document_upload")

        await user.save()
        logger.info("User %s uploaded %s; waiting for remaining documents", user.id, ", ".join(sorted(stored)))
        return user

    async def submit_reference_ids(self, user: User, request: KycSimplifiedRequest) -> User:
        if not (request.aadhar_id and request.pan_id and request.income_proof_id):
            raise ValidationError("All document IDs are required")

        user.documents.aadhar_card = ReferenceDocument(external_id=request.aadhar_id)
        user.documents.pan_card = ReferenceDocument(external_id=request.pan_id)
        user.documents.income_proof = ReferenceDocument(external_id=request.income_proof_id)

        return await self.transition(user, VerificationStatusEnum.pending, source="kyc_simplified")

    async def update_verification(self, user_id: str, status: Optional[str], notes: Optional[str], admin: User) -> User:
        try:
            decision = VerificationStatusEnum(status)
        except ValueError:
            decision = None
        if decision not in ADMIN_DECISIONS:
            raise ValidationError("Invalid verification status")

        user = await self._get_user(user_id)
        user = await self.transition(user, decision, source="admin_review", notes=notes or None, actor=admin.id)
        await self._cascade_to_pending_loans(user, LoanVerificationStatusEnum(decision.value), notes or "")
        return user

    async def quick_verify(self, user_id: str, admin: User) -> User:
        user = await self._get_user(user_id)
        user = await self.transition(user, VerificationStatusEnum.verified, source="quick_verify", actor=admin.id)
        await self._cascade_to_pending_loans(user, LoanVerificationStatusEnum.verified)
        return user

    async def _cascade_to_pending_loans(self, user: User, status: LoanVerificationStatusEnum, notes: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"verification_status": status.value}
        if notes is not None:
            changes["verification_notes"] = notes
        await Loan.find(Loan.user_id == user.id, Loan.status == LoanStatusEnum.pending).update({"$set": changes})

    async def get_user_documents(self, user_id: str) -> Dict[str, Any]:
        user = await self._get_user(user_id)
        documents = user.documents.display_names()
        if not any(documents.values()):
            documents["message"] = "User has not uploaded any documents yet"
        return documents

    async def get_document_file(self, user_id: str, filename: str) -> FileDocument:
        user = await self._get_user(user_id)
        document = user.documents.find_file(filename)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def list_verification_candidates(self) -> List[Dict[str, Any]]:
        loan_owner_ids = await Loan.distinct("user_id")
        awaiting_ids = await User.distinct("_id", {"verification_status": {"$in": [
            VerificationStatusEnum.pending.value,
            VerificationStatusEnum.rejected.value,
            VerificationStatusEnum.not_submitted.value,
        ]}})

        user_ids = list({*loan_owner_ids, *awaiting_ids})
        if not user_ids:
            logger.info("No users found for verification panel")
            return []

        users = await User.find({"_id": {"$in": user_ids}}).to_list()

        loan_counts = {row["_id"]: row for row in await Loan.aggregate([
            {"$match": {"user_id": {"$in": user_ids}}},
            {"$group": {
                "_id": "$user_id",
                "loan_count": {"$sum": 1},
                "pending_loan_count": {"$sum": {"$cond": [{"$eq": ["$status", LoanStatusEnum.pending.value]}, 1, 0]}},
            }},
        ]).to_list()}

        candidates = []
        for user in users:
            counts = loan_counts.get(user.id, {})
            loan_count = counts.get("loan_count", 0)
            pending_loan_count = counts.get("pending_loan_count", 0)
            candidates.append({
                "id": str(user.id),
                "name": user.name,
                "email": user.email or "No email provided",
                "phone": user.phone or "No phone provided",
                "verification_status": user.verification_status.value,
                "loan_count": loan_count,
                "pending_loan_count": pending_loan_count,
                "has_loans": loan_count > 0,
                "has_pending_loans": pending_loan_count > 0,
            })

        candidates.sort(key=lambda c: (
            0 if c["has_pending_loans"] else 1,
            STATUS_PRIORITY[VerificationStatusEnum(c["verification_status"])],
        ))
        logger.info("Returning %d users for verification panel", len(candidates))
        return candidates


verification_service = VerificationService()
