from typing import Any, Dict, List, Optional
from starlette import status


class AppError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        code: str = "bad_request",
        field: Optional[str] = None,
        errors: Optional[List[dict]] = None,  # [{'code':..., 'message':..., 'field':...}]
        details: Optional[Dict[str, Any]] = None,  # Additional details for the error
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.field = field
        self.errors = errors
        self.details = details


class NotFoundError(AppError):
    """Resource is missing, owned by someone else, or in the wrong deletion state"""

    def __init__(self, resource: str = "Resource", **kwargs: Any):
        super().__init__(
            f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            **kwargs,
        )


class ValidationError(AppError):
    def __init__(self, message: str, code: str = "VALIDATION_ERROR", **kwargs: Any):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, code=code, **kwargs)


class ConflictError(AppError):
    def __init__(self, message: str, code: str = "CONFLICT", **kwargs: Any):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, code=code, **kwargs)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized", code: str = "UNAUTHORIZED"):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, code=code)


# Error codes surfaced to API clients
FOLDER_NAME_EXISTS = "FOLDER_NAME_EXISTS"
FOLDER_MAX_DEPTH_EXCEEDED = "FOLDER_MAX_DEPTH_EXCEEDED"
FOLDER_MOVE_INTO_SELF = "FOLDER_MOVE_INTO_SELF"
FOLDER_PARENT_DELETED = "FOLDER_PARENT_DELETED"
STORAGE_QUOTA_EXCEEDED = "STORAGE_QUOTA_EXCEEDED"
FILE_TYPE_NOT_ALLOWED = "FILE_TYPE_NOT_ALLOWED"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
FILE_NOT_IN_STORAGE = "FILE_NOT_IN_STORAGE"
