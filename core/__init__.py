"""Core utilities and configuration for Tierwise"""
from core.config import settings
from core.exceptions import ConfigurationError, EvaluationError, TierwiseError, ValidationError
from core.logging import get_logger

__all__ = [
    "settings",
    "get_logger",
    "TierwiseError",
    "ValidationError",
    "EvaluationError",
    "ConfigurationError",
]
