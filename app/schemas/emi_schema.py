from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional
from datetime import datetime

class EmiStatusEnum(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"

class PayEmiRequest(BaseModel):
    payment_id: Optional[str] = Field(None, description="Reference returned by the payment provider")

class ManualEmiUpdateRequest(BaseModel):
    status: Optional[str] = Field(None, description="Target status: pending, paid or overdue")
    payment_date: Optional[datetime] = Field(None, description="When the offline payment was received")
    payment_reference: Optional[str] = Field(None, description="Receipt or cash reference")
    late_fee: Optional[float] = Field(None, ge=0, description="Late fee override; computed when omitted")
