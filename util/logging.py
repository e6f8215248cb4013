"""
Structured operation logging for the retrieval and relay pipeline.
Sanitizes payloads so document text and message content never reach the
log verbatim.
"""

import logging
from typing import Any, Dict, List

SENSITIVE_FIELDS = ['content', 'text', 'messages', 'api_key', 'authorization', 'password']


class StructuredLogger:
    """Structured logger for ingest, search, relay and telemetry operations."""

    def __init__(self, name: str = "ragrelay"):
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

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_ingest(self, collection: str, count: int, duration_ms: float = None, status: str = "success", error: str = None):
        """Log a knowledge ingestion batch."""
        details = {"collection": collection, "count": count}
        if duration_ms is not None:
            details["duration_ms"] = round(duration_ms, 2)
        if error:
            details["error"] = error[:200]

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation("knowledge.ingest", status, details, level)

    def log_search(self, collection: str, limit: int, hits: int, status: str = "success", error: str = None):
        """Log a knowledge search. Failed searches are warnings: chat continues without context."""
        details = {"collection": collection, "limit": limit, "hits": hits}
        if error:
            details["error"] = error[:200]

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation("knowledge.search", status, details, level)

    def log_collection(self, collection: str, action: str, details: Dict[str, Any] = None):
        """Log collection lifecycle (created / exists)."""
        log_details = {"collection": collection}
        if details:
            log_details.update(details)

        self.log_operation(f"collection.{action}", "success", log_details)

    def log_relay(self, model: str, deltas: int, skipped_frames: int, response_length: int, terminated: str):
        """Log the end of a relayed stream."""
        details = {
            "model": model,
            "deltas": deltas,
            "skipped_frames": skipped_frames,
            "response_length": response_length,
            "terminated": terminated,
        }
        self.log_operation("relay.completed", "success", details)

    def log_upstream_error(self, operation: str, status_code: Any, body: Any = None):
        """Log a non-success answer from the upstream provider."""
        details = {"status_code": status_code}
        if body is not None:
            details["body"] = sanitize_payload(body)

        self.log_operation(f"upstream.{operation}", "failed", details, logging.ERROR)

    def log_telemetry_failure(self, kind: str, name: str, error: str):
        """Log a telemetry item that could not be delivered after all retries."""
        details = {"kind": kind, "name": name, "error": error[:200]}
        self.log_operation("telemetry.delivery", "dropped", details, logging.WARNING)

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


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None, sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type, "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging: redact sensitive keys, truncate long strings."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
