from beanie import Document, Indexed
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Annotated, Optional, Union, Literal
from bson import ObjectId

from app.schemas.user_schemas import RoleEnum, VerificationStatusEnum, EmploymentTypeEnum

class FileDocument(BaseModel):
    """A KYC document uploaded as a file and kept on the server."""
    kind: Literal["file"] = "file"
    filename: str = Field(..., description="Stored file name")
    path: str = Field(..., description="Location of the stored file")
    upload_date: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return self.filename

class ReferenceDocument(BaseModel):
    """A KYC document submitted only as its external identifier (e.g. an Aadhaar number)."""
    kind: Literal["reference"] = "reference"
    external_id: str = Field(..., description="Identifier printed on the document")
    upload_date: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return self.external_id

KycDocument = Annotated[Union[FileDocument, ReferenceDocument], Field(discriminator="kind")]

DOCUMENT_SLOTS = ("aadhar_card", "pan_card", "income_proof")

class UserDocuments(BaseModel):
    aadhar_card: Optional[KycDocument] = None
    pan_card: Optional[KycDocument] = None
    income_proof: Optional[KycDocument] = None

    def is_complete(self) -> bool:
        return all(getattr(self, slot) is not None for slot in DOCUMENT_SLOTS)

    def display_names(self) -> dict:
        return {
            slot: (getattr(self, slot).display_name if getattr(self, slot) is not None else None)
            for slot in DOCUMENT_SLOTS
        }

    def find_file(self, filename: str) -> Optional[FileDocument]:
        for slot in DOCUMENT_SLOTS:
            doc = getattr(self, slot)
            if isinstance(doc, FileDocument) and doc.filename == filename:
                return doc
        return None

class User(Document):
    name: str = Field(..., description="Full name of the user")
    email: Indexed(str, unique=True) = Field(..., description="Email address of the user")
    hashed_password: str = Field(..., description="Hashed password for the user account")
    role: RoleEnum = Field(default=RoleEnum.user, description="Access role")

    phone: str = Field(default="", description="Contact number")
    address: str = Field(default="", description="Residential address")
    annual_income: float = Field(default=0, ge=0, description="Declared annual income")
    employment_type: EmploymentTypeEnum = Field(default=EmploymentTypeEnum.unspecified)
    employment_years: str = Field(default="", description="Years in current employment")

    documents: UserDocuments = Field(default_factory=UserDocuments)
    verification_status: VerificationStatusEnum = Field(default=VerificationStatusEnum.not_submitted)
    verification_notes: str = Field(default="")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Timestamp when the user was created")

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatusEnum.verified

    # Only writer of verification_status; is_verified is derived from it
    def set_verification_status(self, status: VerificationStatusEnum, notes: Optional[str] = None) -> None:
        self.verification_status = VerificationStatusEnum(status)
        if notes is not None:
            self.verification_notes = notes

    class Settings:
        name = "users"  # Collection name in MongoDB

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {
            ObjectId: str,
            datetime: lambda v: v.isoformat()
        }
