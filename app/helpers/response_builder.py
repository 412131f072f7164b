from typing import Any, Dict, Iterable, List, Optional
from bson import ObjectId
from beanie.odm.fields import PydanticObjectId

from app.core.exceptions import NotFoundError
from app.database.models import User, Loan, Emi


def parse_object_id(value: Any, entity: str = "Resource") -> PydanticObjectId:
    """Turn a path parameter into an ObjectId; malformed ids read as missing entities."""
    if isinstance(value, ObjectId):
        return PydanticObjectId(value)
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise NotFoundError(f"{entity} not found")
    return PydanticObjectId(value)


def convert_objectid(obj):
    """Convert PydanticObjectId fields to strings."""
    if isinstance(obj, dict):
        return {key: convert_objectid(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_objectid(item) for item in obj]
    elif isinstance(obj, (PydanticObjectId, ObjectId)):
        return str(obj)
    return obj


def _dump(document, exclude: Optional[set] = None) -> Dict[str, Any]:
    data = document.model_dump(mode="json", exclude={"revision_id"} | (exclude or set()))
    data["id"] = str(document.id) if document.id is not None else None
    return convert_objectid(data)


def build_user_response(user: User) -> Dict[str, Any]:
    data = _dump(user, exclude={"hashed_password"})
    data["is_verified"] = user.is_verified
    return data


def build_loan_response(loan: Loan, include_interest_rate: bool = False) -> Dict[str, Any]:
    # The interest rate is only ever shown to admins
    exclude = None if include_interest_rate else {"interest_rate"}
    return _dump(loan, exclude=exclude)


def build_loan_list_response(loans: Iterable[Loan], include_interest_rate: bool = False) -> List[Dict[str, Any]]:
    return [build_loan_response(loan, include_interest_rate) for loan in loans]


def build_emi_response(emi: Emi) -> Dict[str, Any]:
    return _dump(emi)


def build_emi_list_response(emis: Iterable[Emi]) -> List[Dict[str, Any]]:
    return [build_emi_response(emi) for emi in emis]
