from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional

from app.schemas.user_schemas import EmploymentTypeEnum

class LoanStatusEnum(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    paid = "paid"

class LoanVerificationStatusEnum(str, Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"

class LoanApplicationRequest(BaseModel):
    """Fields a borrower submits when applying.

    amount, purpose and term are checked by the loan service rather than here
    so a missing value reports the same message the client already displays.
    """
    amount: Optional[float] = Field(None, description="Requested principal")
    purpose: Optional[str] = Field(None, description="What the loan is for")
    term: Optional[int] = Field(None, description="Repayment term in months")

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    annual_income: Optional[float] = Field(None, ge=0)
    employment_type: Optional[EmploymentTypeEnum] = None
    employment_years: Optional[str] = None

class LoanRejectRequest(BaseModel):
    rejection_reason: Optional[str] = Field(None, description="Reason shown to the borrower")

class LoanCalculatorRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Principal")
    term: int = Field(..., ge=1, description="Term in months")
