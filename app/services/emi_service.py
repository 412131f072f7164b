import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId
from pymongo.errors import BulkWriteError, DuplicateKeyError

from app.core.exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from app.database.models import Emi, Loan, User
from app.helpers.response_builder import parse_object_id
from app.schemas import EmiStatusEnum, LoanStatusEnum, ManualEmiUpdateRequest
from app.services import amortization
from app.services.audit_service import audit_service

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class EmiService:

    # Builds and inserts the full installment schedule for an approved loan
    async def create_schedule(self, loan: Loan, *, start: Optional[datetime] = None, session=None) -> Tuple[List[Emi], float]:
        start = start or datetime.utcnow()
        emi_amount = amortization.calculate_emi(loan.amount, loan.term, loan.interest_rate)

        emis = [
            Emi(
                id=PydanticObjectId(),
                loan_id=loan.id,
                user_id=loan.user_id,
                installment_number=number,
                amount=emi_amount,
                due_date=due_date,
                status=EmiStatusEnum.pending,
            )
            for number, due_date in enumerate(amortization.due_dates(start, loan.term), start=1)
        ]

        try:
            await Emi.insert_many(emis, session=session)
        except (DuplicateKeyError, BulkWriteError) as e:
            logger.warning("Schedule for loan %s already exists: %s", loan.id, type(e).__name__)
            raise ConflictError("EMIs have already been generated for this loan")

        logger.info("Generated %d EMIs of %.2f for loan %s", len(emis), emi_amount, loan.id)
        return emis, emi_amount

    async def generate_for_loan(self, loan_id: str, admin: User) -> List[Emi]:
        loan = await Loan.get(parse_object_id(loan_id, "Loan"))
        if not loan:
            raise NotFoundError("Loan not found")

        if loan.status != LoanStatusEnum.approved:
            raise ConflictError("EMIs can only be generated for approved loans")

        if await Emi.find(Emi.loan_id == loan.id).count() > 0:
            raise ConflictError("EMIs have already been generated for this loan")

        emis, _ = await self.create_schedule(loan)
        await audit_service.record("generate_emis", actor=admin.id, acted=loan.id, count=len(emis))
        return emis

    async def _get_emi(self, emi_id: str) -> Emi:
        emi = await Emi.get(parse_object_id(emi_id, "EMI"))
        if not emi:
            raise NotFoundError("EMI not found")
        return emi

    # Compare-and-set on the current status so two concurrent writers cannot both succeed
    async def _apply(self, emi: Emi, changes: Dict[str, Any], conflict_message: str) -> Emi:
        result = await Emi.find_one({"_id": emi.id, "status": emi.status.value}).update({"$set": changes})
        if not result or result.modified_count == 0:
            raise ConflictError(conflict_message)

        for field, value in changes.items():
            setattr(emi, field, EmiStatusEnum(value) if field == "status" else value)
        return emi

    def _paid_changes(self, emi: Emi, paid_on: datetime, payment_id: str, late_fee: Optional[float] = None) -> Dict[str, Any]:
        if late_fee is None:
            late_fee = amortization.late_fee_for(emi.amount, emi.due_date, paid_on)
        return {
            "status": EmiStatusEnum.paid.value,
            "paid_date": paid_on,
            "payment_id": payment_id,
            "late_fee": late_fee,
            "total_paid": emi.amount + late_fee,
        }

    async def pay(self, emi_id: str, current_user: User, payment_id: Optional[str] = None) -> Emi:
        emi = await self._get_emi(emi_id)

        if emi.user_id != current_user.id and not current_user.is_admin:
            raise AuthorizationError("Not authorized to pay this EMI")

        if emi.status == EmiStatusEnum.paid:
            raise ConflictError("This EMI has already been paid")

        now = datetime.utcnow()
        changes = self._paid_changes(emi, now, payment_id or f"PAY-{_epoch_ms()}")
        emi = await self._apply(emi, changes, "This EMI has already been paid")

        logger.info("EMI %s paid (late fee %.2f)", emi.id, emi.late_fee)
        await audit_service.record("pay_emi", actor=current_user.id, acted=emi.id, late_fee=emi.late_fee, total_paid=emi.total_paid)

        await self._complete_loan_if_settled(emi.loan_id)
        return emi

    async def manual_update(self, emi_id: str, request: ManualEmiUpdateRequest, current_user: User) -> Emi:
        if not request.status:
            raise ValidationError("Status is required")
        try:
            target = EmiStatusEnum(request.status)
        except ValueError:
            raise ValidationError("Invalid EMI status")

        emi = await self._get_emi(emi_id)

        if not current_user.is_admin:
            raise AuthorizationError("Not authorized to update EMI manually")

        if not emi.can_transition_to(target):
            raise ConflictError(f"Cannot change EMI status from {emi.status.value} to {target.value}")

        if target == EmiStatusEnum.paid:
            paid_on = request.payment_date or datetime.utcnow()
            if paid_on.tzinfo is not None:
                # Stored datetimes are naive UTC
                paid_on = paid_on.astimezone(timezone.utc).replace(tzinfo=None)
            changes = self._paid_changes(
                emi,
                paid_on,
                request.payment_reference or f"MANUAL-{_epoch_ms()}",
                late_fee=request.late_fee,
            )
        else:
            changes = {"status": target.value}

        emi = await self._apply(emi, changes, "EMI was updated by another request")
        logger.info("EMI %s manually set to %s by %s", emi.id, target.value, current_user.id)
        await audit_service.record("manual_update_emi", actor=current_user.id, acted=emi.id, status_to=target.value)

        if target == EmiStatusEnum.paid:
            await self._complete_loan_if_settled(emi.loan_id)
        return emi

    async def _complete_loan_if_settled(self, loan_id: PydanticObjectId) -> bool:
        unpaid = await Emi.find(Emi.loan_id == loan_id, Emi.status != EmiStatusEnum.paid).count()
        if unpaid:
            return False

        result = await Loan.find_one({"_id": loan_id, "status": LoanStatusEnum.approved.value}).update(
            {"$set": {"status": LoanStatusEnum.paid.value}}
        )
        if result and result.modified_count:
            logger.info("All EMIs settled; loan %s marked paid", loan_id)
            await audit_service.record("loan_paid", acted=loan_id)
            return True
        return False

    async def update_overdue(self, as_of: Optional[datetime] = None) -> List[Emi]:
        as_of = as_of or datetime.utcnow()
        overdue = await Emi.find(Emi.status == EmiStatusEnum.pending, Emi.due_date < as_of).to_list()
        if not overdue:
            return []

        # Late fees are computed when the installment is paid, not here
        await Emi.find({"_id": {"$in": [e.id for e in overdue]}, "status": EmiStatusEnum.pending.value}).update(
            {"$set": {"status": EmiStatusEnum.overdue.value}}
        )
        for emi in overdue:
            emi.status = EmiStatusEnum.overdue

        logger.info("%d EMIs marked as overdue", len(overdue))
        await audit_service.record("update_overdue", count=len(overdue))
        return overdue

    async def list_all(self) -> List[Emi]:
        return await Emi.find_all().sort("+due_date").to_list()

    async def list_for_user(self, user: User) -> List[Emi]:
        return await Emi.find(Emi.user_id == user.id).sort("+due_date").to_list()

    async def list_for_loan(self, loan_id: str, current_user: User) -> List[Emi]:
        loan = await Loan.get(parse_object_id(loan_id, "Loan"))
        if not loan:
            raise NotFoundError("Loan not found")

        if loan.user_id != current_user.id and not current_user.is_admin:
            raise AuthorizationError("Not authorized to view these EMIs")

        return await Emi.find(Emi.loan_id == loan.id).sort("+due_date").to_list()


emi_service = EmiService()
