import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from app.database.models import Loan, Emi, User
from app.database.unit_of_work import unit_of_work
from app.helpers.response_builder import parse_object_id, build_loan_response
from app.schemas import LoanApplicationRequest, LoanStatusEnum
from app.services import amortization
from app.services.audit_service import audit_service
from app.services.emi_service import EmiService, emi_service
from app.services.verification_service import VerificationService, verification_service

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("phone", "address", "annual_income", "employment_type", "employment_years")


class LoanApplicationService:

    def __init__(self, emi_service: EmiService, verification_service: VerificationService):
        self.emi_service = emi_service
        self.verification_service = verification_service
        logger.info("LoanApplicationService initialized")

    def _validate_loan_application_data(self, request: LoanApplicationRequest) -> None:
        if not request.amount or not request.purpose or not request.term:
            raise ValidationError("Please provide all required loan details")
        if request.amount <= 0:
            raise ValidationError("Loan amount must be greater than zero")
        if request.term < 1:
            raise ValidationError("Loan term must be at least one month")
        if not request.purpose.strip():
            raise ValidationError("Please provide all required loan details")

    # Creates a pending loan for the borrower and records any profile details supplied with it
    async def apply_for_loan(self, request: LoanApplicationRequest, user: User) -> Loan:
        self._validate_loan_application_data(request)

        supplied = {f: getattr(request, f) for f in PROFILE_FIELDS if getattr(request, f)}
        if supplied:
            for field, value in supplied.items():
                setattr(user, field, value)
            await user.save()
            logger.info("Updated profile fields %s for user %s", ", ".join(sorted(supplied)), user.id)

        await self.verification_service.ensure_verified_for_loan(user, source="auto_apply")

        loan = Loan(
            user_id=user.id,
            amount=request.amount,
            purpose=request.purpose.strip(),
            term=request.term,
            interest_rate=settings.FIXED_INTEREST_RATE,
            full_name=request.full_name or user.name,
            email=request.email or user.email,
            phone=user.phone,
            address=user.address,
            annual_income=user.annual_income,
            employment_type=user.employment_type.value,
            employment_years=user.employment_years,
        )
        await loan.insert()

        logger.info("Loan %s created for user %s (amount=%s, term=%s)", loan.id, user.id, loan.amount, loan.term)
        await audit_service.record("apply_loan", actor=user.id, acted=loan.id, amount=loan.amount, term=loan.term)
        return loan

    async def _get_loan(self, loan_id: str) -> Loan:
        loan = await Loan.get(parse_object_id(loan_id, "Loan"))
        if not loan:
            raise NotFoundError("Loan not found")
        return loan

    async def get_loan(self, loan_id: str, current_user: User) -> Loan:
        loan = await self._get_loan(loan_id)
        if loan.user_id != current_user.id and not current_user.is_admin:
            raise AuthorizationError("Not authorized to view this loan")
        return loan

    async def list_all_loans(self) -> List[Loan]:
        return await Loan.find_all().sort("-application_date").to_list()

    # Oldest first so admins work the queue in arrival order
    async def list_pending_loans(self) -> List[Loan]:
        return await Loan.find(Loan.status == LoanStatusEnum.pending).sort("+application_date").to_list()

    async def list_user_loans(self, user: User) -> List[Loan]:
        return await Loan.find(Loan.user_id == user.id).sort("-application_date").to_list()

    async def with_owners(self, loans: List[Loan]) -> List[Dict[str, Any]]:
        """Admin listing: each loan plus a short summary of its borrower."""
        owner_ids = list({loan.user_id for loan in loans})
        owners = {u.id: u for u in await User.find({"_id": {"$in": owner_ids}}).to_list()} if owner_ids else {}
        results = []
        for loan in loans:
            data = build_loan_response(loan, include_interest_rate=True)
            owner = owners.get(loan.user_id)
            data["user"] = {
                "id": str(owner.id),
                "name": owner.name,
                "email": owner.email,
                "phone": owner.phone,
                "verification_status": owner.verification_status.value,
            } if owner else None
            results.append(data)
        return results

    async def approve_loan(self, loan_id: str, admin: User) -> Dict[str, Any]:
        loan = await self._get_loan(loan_id)

        if loan.status != LoanStatusEnum.pending:
            raise ConflictError(f"Loan is already {loan.status.value}")

        owner = await User.get(loan.user_id)
        if not owner:
            raise NotFoundError("User not found")
        if not owner.is_verified and not settings.AUTO_VERIFY_ON_LOAN:
            raise ConflictError("User must be verified before loan approval")

        now = datetime.utcnow()
        changes = {
            "status": LoanStatusEnum.approved.value,
            "approval_date": now,
            "approved_by": admin.id,
            "interest_rate": settings.FIXED_INTEREST_RATE,
        }

        async with unit_of_work() as session:
            # Only one approval can move the loan out of pending
            result = await Loan.find_one({"_id": loan.id, "status": LoanStatusEnum.pending.value}).update(
                {"$set": changes}, session=session
            )
            if not result or result.modified_count == 0:
                raise ConflictError("Loan is no longer pending")

            loan.status = LoanStatusEnum.approved
            loan.approval_date = now
            loan.approved_by = admin.id
            loan.interest_rate = settings.FIXED_INTEREST_RATE

            try:
                emis, emi_amount = await self.emi_service.create_schedule(loan, start=now, session=session)
                await self.verification_service.ensure_verified_for_loan(
                    owner, source="auto_approve", actor=admin.id, session=session
                )
            except Exception:
                if session is None:
                    await self._revert_approval(loan)
                raise

        logger.info("Loan %s approved by %s with %d EMIs", loan.id, admin.id, len(emis))
        await audit_service.record("approve_loan", actor=admin.id, acted=loan.id, emi_count=len(emis), monthly_amount=emi_amount)

        return {
            "loan": loan,
            "emis": {
                "count": len(emis),
                "monthly_amount": emi_amount,
            },
        }

    # Without a transaction, undo a half-finished approval so the loan can be approved again
    async def _revert_approval(self, loan: Loan) -> None:
        logger.error("Approval of loan %s failed part-way; reverting to pending", loan.id)
        await Emi.find(Emi.loan_id == loan.id).delete()
        await Loan.find_one({"_id": loan.id}).update({"$set": {
            "status": LoanStatusEnum.pending.value,
            "approval_date": None,
            "approved_by": None,
        }})
        loan.status = LoanStatusEnum.pending
        loan.approval_date = None
        loan.approved_by = None

    async def reject_loan(self, loan_id: str, rejection_reason: Optional[str], admin: User) -> Loan:
        reason = (rejection_reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required")

        loan = await self._get_loan(loan_id)

        if loan.status != LoanStatusEnum.pending:
            raise ConflictError(f"Loan is already {loan.status.value}")

        result = await Loan.find_one({"_id": loan.id, "status": LoanStatusEnum.pending.value}).update({"$set": {
            "status": LoanStatusEnum.rejected.value,
            "rejection_reason": reason,
            "approved_by": admin.id,
        }})
        if not result or result.modified_count == 0:
            raise ConflictError("Loan is no longer pending")

        loan.status = LoanStatusEnum.rejected
        loan.rejection_reason = reason
        loan.approved_by = admin.id

        logger.info("Loan %s rejected by %s", loan.id, admin.id)
        await audit_service.record("reject_loan", actor=admin.id, acted=loan.id, reason=reason)
        return loan

    def calculate(self, amount: float, term: int) -> Dict[str, Any]:
        """Borrower-facing calculator; the rate is reported only as the display placeholder."""
        summary = amortization.loan_summary(amount, term)
        schedule = [
            {key: (round(value, 2) if isinstance(value, float) else value) for key, value in row.items()}
            for row in amortization.generate_repayment_schedule(amount, term)
        ]
        return {
            "interest_rate": settings.DISPLAYED_INTEREST_RATE,
            **summary,
            "schedule": schedule,
        }


loan_application_service = LoanApplicationService(emi_service, verification_service)
