from beanie import Document, PydanticObjectId
from pydantic import Field
from typing import Optional
from datetime import datetime
from pymongo import ASCENDING, DESCENDING, IndexModel

from app.core.config import settings
from app.schemas.loan_schema import LoanStatusEnum, LoanVerificationStatusEnum

class Loan(Document):
    user_id: PydanticObjectId = Field(..., description="Borrower who owns the loan")
    amount: float = Field(..., gt=0, description="Principal requested by the borrower")
    purpose: str = Field(..., min_length=1, description="Purpose of the loan")
    term: int = Field(..., ge=1, description="Repayment term in months")
    interest_rate: float = Field(default_factory=lambda: settings.FIXED_INTEREST_RATE, description="Annual rate; never shown to borrowers")
    status: LoanStatusEnum = Field(default=LoanStatusEnum.pending, description="Current lifecycle state")
    rejection_reason: str = Field(default="", description="Set only when the loan is rejected")

    application_date: datetime = Field(default_factory=datetime.utcnow, description="When the application was submitted")
    approval_date: Optional[datetime] = Field(None, description="When an admin approved the loan")
    approved_by: Optional[PydanticObjectId] = Field(None, description="Admin who approved or rejected the loan")

    # Applicant details as submitted with the application
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    annual_income: Optional[float] = None
    employment_type: Optional[str] = None
    employment_years: Optional[str] = None

    verification_status: LoanVerificationStatusEnum = Field(default=LoanVerificationStatusEnum.pending)
    verification_notes: str = Field(default="")

    class Settings:
        name = "loans"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("application_date", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("application_date", ASCENDING)]),
        ]

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {
            datetime: lambda v: v.isoformat(),
        }
