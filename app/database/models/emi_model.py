from beanie import Document, PydanticObjectId
from pydantic import Field
from typing import Optional, Dict, Set
from datetime import datetime
from pymongo import ASCENDING, IndexModel

from app.schemas.emi_schema import EmiStatusEnum

# pending -> paid | overdue, overdue -> paid
EMI_TRANSITIONS: Dict[EmiStatusEnum, Set[EmiStatusEnum]] = {
    EmiStatusEnum.pending: {EmiStatusEnum.paid, EmiStatusEnum.overdue},
    EmiStatusEnum.overdue: {EmiStatusEnum.paid},
    EmiStatusEnum.paid: set(),
}

class Emi(Document):
    loan_id: PydanticObjectId = Field(..., description="Loan this installment belongs to")
    user_id: PydanticObjectId = Field(..., description="Borrower who owes the installment")
    installment_number: int = Field(..., ge=1, description="Position in the repayment schedule, starting at 1")
    amount: float = Field(..., gt=0, description="Fixed monthly installment")
    due_date: datetime = Field(..., description="When the installment falls due")
    paid_date: Optional[datetime] = None
    status: EmiStatusEnum = Field(default=EmiStatusEnum.pending)
    payment_id: Optional[str] = None
    late_fee: float = Field(default=0, ge=0)
    total_paid: Optional[float] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def can_transition_to(self, target: EmiStatusEnum) -> bool:
        return target in EMI_TRANSITIONS[self.status]

    class Settings:
        name = "emis"
        indexes = [
            # A loan's schedule can only be written once
            IndexModel([("loan_id", ASCENDING), ("installment_number", ASCENDING)], unique=True),
            IndexModel([("user_id", ASCENDING), ("due_date", ASCENDING)]),
            IndexModel([("status", ASCENDING), ("due_date", ASCENDING)]),
        ]
