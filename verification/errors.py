from typing import Any, Dict, Optional


class KYCError(Exception):
    """Base error carrying the HTTP status and the public error message."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidInput(KYCError):
    status_code = 400
    message = "Invalid input parameters"


class Unauthorized(KYCError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(KYCError):
    status_code = 403
    message = "Forbidden"


class NotFound(KYCError):
    status_code = 404
    message = "Not found"


class Conflict(KYCError):
    status_code = 409
    message = "Conflict"


class PayloadTooLarge(KYCError):
    status_code = 413
    message = "Request too large"


class RateLimited(KYCError):
    status_code = 429
    message = "Too many requests"


class StorageError(KYCError):
    message = "Failed to access images"


class GatewayError(KYCError):
    message = "AI analysis failed"


class PersistenceError(KYCError):
    message = "Failed to save analysis results"
