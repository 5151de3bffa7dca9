"""
Error taxonomy for the knowledge vector cache.
Validation errors surface immediately; orchestration errors carry scope context.
"""

from typing import Any, Dict, Optional


class VectorCacheError(Exception):
    """Base exception for vector cache operations."""

    error_type = "VECTOR_CACHE_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for logging and error responses."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "details": self.context,
        }

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} {self.context}"


class InvalidSearchParameterError(VectorCacheError):
    """Threshold, limit or query embedding outside the accepted range."""

    error_type = "INVALID_SEARCH_PARAMETER"


class DimensionMismatchError(VectorCacheError):
    """Query and cached vector lengths differ."""

    error_type = "DIMENSION_MISMATCH"

    def __init__(self, dim_a: int, dim_b: int, context: Optional[Dict[str, Any]] = None):
        details = {"dim_a": dim_a, "dim_b": dim_b}
        details.update(context or {})
        super().__init__("Vector dimensions must match for similarity calculation", details)
        self.dim_a = dim_a
        self.dim_b = dim_b


class OrchestrationError(VectorCacheError):
    """Unexpected failure inside an initialize, search, clear or monitor workflow."""

    error_type = "ORCHESTRATION_FAILURE"

    def __init__(self, operation: str, message: str, context: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None):
        details = {"operation": operation}
        if cause is not None:
            details["error"] = str(cause)
            if isinstance(cause, VectorCacheError):
                details["cause_type"] = cause.error_type
                details["cause_context"] = cause.context
        details.update(context or {})
        super().__init__(message, details)
        self.operation = operation
        self.cause = cause


class InvalidCacheConfigError(VectorCacheError):
    """Cache budgets that cannot be enforced."""

    error_type = "INVALID_CACHE_CONFIG"
