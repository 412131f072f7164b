# schemas.py
from pydantic import BaseModel, EmailStr, Field
from enum import Enum
from typing import Optional

class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"

class VerificationStatusEnum(str, Enum):
    not_submitted = "not_submitted"
    pending = "pending"
    verified = "verified"
    rejected = "rejected"

class EmploymentTypeEnum(str, Enum):
    unspecified = ""
    salaried = "Salaried"
    self_employed = "Self-Employed"
    business_owner = "Business Owner"
    freelancer = "Freelancer"
    other = "Other"

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Full name of the user")
    email: EmailStr = Field(..., description="Email address of the user")
    password: str = Field(..., min_length=6, description="Password for the user account")

class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="Email address of the user")
    password: str = Field(..., description="Password for the user account")

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    annual_income: Optional[float] = Field(None, ge=0)
    employment_type: Optional[EmploymentTypeEnum] = None
    employment_years: Optional[str] = None

class KycSimplifiedRequest(BaseModel):
    aadhar_id: Optional[str] = Field(None, description="Aadhaar card number")
    pan_id: Optional[str] = Field(None, description="PAN card number")
    income_proof_id: Optional[str] = Field(None, description="Reference number of the income proof")

class VerificationUpdateRequest(BaseModel):
    # Kept as a plain string so an unknown value surfaces as a 400 with a readable message
    status: Optional[str] = Field(None, description="One of verified, rejected, pending")
    notes: Optional[str] = Field(None, description="Reviewer notes")

class QuickVerifyRequest(BaseModel):
    user_id: str = Field(..., description="ID of the user to verify")
