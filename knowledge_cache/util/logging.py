"""
Structured logging for the knowledge vector cache.
Session-style sinks (step, message, metrics, error) over the standard logging module.
"""

import logging
from typing import Any, Dict, List, Optional


class StructuredLogger:
    """Structured logger for cache initialization, search, clear and monitoring."""

    def __init__(self, name: str = "knowledge_cache", level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        if status in ("error", "failed"):
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, scope: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector cache operation for one scope."""
        log_details = {"scope": scope}
        if details:
            log_details.update(details)

        self.log_operation(f"vector_cache.{operation}", status, log_details)

    # Session sinks used by the cache orchestrator
    def log_step(self, step: str) -> None:
        """Log the start of a workflow stage."""
        self.logger.info(f"=== {step} ===")

    def log_message(self, message: str) -> None:
        """Log a free-form progress message."""
        self.logger.info(message)

    def log_metrics(self, name: str, duration_ms: Optional[float] = None, custom_metrics: Dict[str, Any] = None) -> None:
        """Log a named metrics snapshot."""
        log_details: Dict[str, Any] = {}
        if duration_ms is not None:
            log_details["duration_ms"] = round(duration_ms, 2)
        if custom_metrics:
            log_details.update(custom_metrics)

        self.log_operation(f"metrics.{name}", "recorded", log_details)

    def log_error(self, operation: str, error: BaseException, context: Dict[str, Any] = None) -> None:
        """Log a failed operation with its error and context."""
        log_details = {
            "error_type": type(error).__name__,
            "error": str(error)[:200],
        }
        if context:
            log_details.update(context)

        self.log_operation(operation, "error", log_details)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging: redact sensitive keys, truncate long strings."""
    if sensitive_fields is None:
        sensitive_fields = ['content', 'secret', 'password', 'token']

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if k in sensitive_fields:
                sanitized[k] = "[REDACTED]"
            else:
                sanitized[k] = sanitize_payload(v, sensitive_fields)
        return sanitized
    elif isinstance(payload, str):
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, sensitive_fields) for item in payload]
    else:
        return payload
