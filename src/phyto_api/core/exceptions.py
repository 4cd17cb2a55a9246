"""Custom exception classes for the API."""

from typing import Any


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int = 400, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Validation error."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=422, details=details)


class ImagePrecheckError(ValidationError):
    """The uploaded image failed the local pre-flight check.

    Raised before any provider is contacted. ``details`` carries the
    concrete issues and suggestions from the precheck.
    """

    def __init__(self, issues: list[str], suggestions: list[str], quality: float):
        super().__init__(
            message="Image rejected by precheck",
            details={
                "issues": issues,
                "suggestions": suggestions,
                "quality": quality,
            },
        )
        self.issues = issues
        self.suggestions = suggestions
        self.quality = quality


class PayloadTooLargeError(APIError):
    """Uploaded image exceeds the configured size limit."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            message=f"Image exceeds maximum size of {max_size // (1024 * 1024)} MB",
            status_code=400,
            details={"size": size, "max_size": max_size},
        )
