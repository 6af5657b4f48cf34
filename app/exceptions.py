from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

class APIException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class OTPServiceError(APIException):
    """Base for failures of the OTP flow; carries the HTTP status it maps to."""
    status_code = 400
    default_message = "OTP request failed"

    def __init__(self, message: str = None):
        super().__init__(status_code=type(self).status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class ClientInputError(OTPServiceError):
    default_message = "invalid request"


class SessionNotFoundError(OTPServiceError):
    default_message = "verification request not found or expired"


class SessionExpiredError(OTPServiceError):
    default_message = "verification code expired"


class InvalidCodeError(OTPServiceError):
    default_message = "Invalid verification code"


class UpstreamDeliveryError(OTPServiceError):
    default_message = "Failed to request verification code"


class PersistenceError(OTPServiceError):
    status_code = 500
    default_message = "Failed to load OTP requests"


class ProvisioningError(OTPServiceError):
    status_code = 500
    default_message = "Failed to provision identity"


class IdentityExistsError(Exception):
    """Raised by an identity directory when the phone is already registered."""

    def __init__(self, phone: str):
        super().__init__(f"identity for {phone} already exists")
        self.phone = phone


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )
