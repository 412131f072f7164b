from app.schemas.user_schemas import (
    RoleEnum,
    VerificationStatusEnum,
    EmploymentTypeEnum,
    UserCreate,
    UserLogin,
    ProfileUpdate,
    KycSimplifiedRequest,
    VerificationUpdateRequest,
    QuickVerifyRequest,
)
from app.schemas.loan_schema import (
    LoanStatusEnum,
    LoanVerificationStatusEnum,
    LoanApplicationRequest,
    LoanRejectRequest,
    LoanCalculatorRequest,
)
from app.schemas.emi_schema import EmiStatusEnum, PayEmiRequest, ManualEmiUpdateRequest
