from fastapi import status


class LoanAppError(Exception):
    """Base class for failures that map onto a client-facing HTTP status.

    Services raise these; the handlers registered in ``main.py`` turn them
    into ``{"message": ...}`` JSON bodies.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LoanAppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(LoanAppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(LoanAppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(LoanAppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(LoanAppError):
    status_code = status.HTTP_409_CONFLICT
