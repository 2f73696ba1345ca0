# chatrelay/utils/errors.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException


class ErrorCode:
    AUTH_001 = "AUTH_001"  # Missing or invalid identity

    ROOM_001 = "ROOM_001"  # Room or message not found
    CHAT_001 = "CHAT_001"  # Malformed request
    CHAT_002 = "CHAT_002"  # Duplicate or in-flight message uuid

    UPSTREAM_001 = "UPSTREAM_001"  # Model provider failure
    STORE_001 = "STORE_001"  # Commit after success failed


class APIError(HTTPException):
    def __init__(
            self,
            code: str,
            message: str,
            status_code: int = 400,
            details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = code
        self.error_message = message
        self.error_details = details
        super().__init__(status_code=status_code, detail=message)

    def __str__(self) -> str:
        return self.error_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Fail",
            "message": self.error_message,
            "data": None,
        }

    def to_log(self) -> Dict[str, Any]:
        return {
            "code": self.error_code,
            "message": self.error_message,
            "details": self.error_details,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }


class AuthError(APIError):
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.AUTH_001, message, 401, details)


class NotFoundError(APIError):
    def __init__(self, message: str = "Unknown room", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.ROOM_001, message, 404, details)


class ValidationError(APIError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.CHAT_001, message, 400, details)


class ConflictError(APIError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.CHAT_002, message, 409, details)


class UpstreamError(APIError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.UPSTREAM_001, message, 502, details)


class DurabilityError(APIError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.STORE_001, message, 500, details)
