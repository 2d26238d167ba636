"""
Custom exceptions for Tierwise
Provides structured error handling across all domains
"""
from typing import Any, Dict, Optional

# What the caller should do about an error
CATEGORY_INPUT = "input"  # fix your input
CATEGORY_RETRY = "retry"  # try again later
CATEGORY_INTERNAL = "internal"  # our bug


class TierwiseError(Exception):
    """Base exception for all Tierwise errors"""

    error_category = CATEGORY_INTERNAL

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(TierwiseError):
    """Raised when input validation fails"""

    error_category = CATEGORY_INPUT

    def __init__(self, message: str, field: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field, **details} if field else details,
            status_code=400,
        )
        self.field = field


class EvaluationError(TierwiseError):
    """Raised when an arithmetic expression cannot be parsed or evaluated"""

    def __init__(self, message: str, expression: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="EVALUATION_ERROR",
            details={"expression": expression, **details} if expression is not None else details,
            status_code=422,
        )
        self.expression = expression


class ConfigurationError(TierwiseError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {},
            status_code=500,
        )
