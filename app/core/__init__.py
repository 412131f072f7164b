from app.core.config import Settings, settings
from app.core.security import hash_password, verify_password, create_access_token, decode_token, is_valid_password
from app.core.exceptions import (
    LoanAppError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
)
