"""
Structured logging for resolver operations: memoization, inference,
external lookups and status reporting.
"""

import logging
from typing import Any, Dict, Sequence


class StructuredLogger:
    """Structured logger for resolver operations."""

    def __init__(self, name: str = "memo_resolver"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

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

        if status in ("failed", "error"):
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_memory_operation(self, operation: str, query: str = None, status: str = "success", details: Dict[str, Any] = None):
        """Log a memoization store operation."""
        log_details = {}
        if query is not None:
            log_details["query"] = query
        if details:
            log_details.update(details)

        self.log_operation(f"memory.{operation}", status, log_details)

    def log_inference(self, probabilities: Sequence[float], tag: str, confidence: float, accepted: bool):
        """Log the outcome of one forward evaluation."""
        log_details = {
            "probabilities": "[" + ", ".join(f"{p:.2f}" for p in probabilities) + "]",
            "predicted": tag,
            "confidence": f"{confidence:.4f}",
        }
        self.log_operation("inference", "accepted" if accepted else "rejected", log_details)

    def log_external_lookup(self, query: str, status: str, details: Dict[str, Any] = None):
        """Log an external lookup attempt."""
        log_details = {"query": query}
        if details:
            log_details.update(details)

        self.log_operation("external.search", status, log_details)

    def log_heartbeat_task(self, task_name: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log status reporter task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)
        elif status == "success":
            log_details["message"] = f"Heartbeat task '{task_name}' completed in {duration_ms}ms"
        elif status == "failed":
            log_details["message"] = f"Heartbeat task '{task_name}' failed after {duration_ms}ms"

        self.log_operation(f"heartbeat.{task_name}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


def sanitize_payload(payload: Any, limit: int = 100) -> Any:
    """Truncate long strings inside a payload for logging."""
    if isinstance(payload, dict):
        return {k: sanitize_payload(v, limit) for k, v in payload.items()}
    elif isinstance(payload, str):
        return payload[:limit] + "..." if len(payload) > limit else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, limit) for item in payload]
    else:
        return payload


# Global logger instance
logger = StructuredLogger()
