"""
Structured operation logging for the assist core.
Tool dispatch, retrieval tiers, pattern analysis runs and scheduler tasks all
report through one logger so operations can be audited per tenant.
"""

import logging
from typing import Any, Dict, List


class StructuredLogger:
    """Structured logger for tool, retrieval, pattern and scheduler operations."""

    def __init__(self, name: str = "assist_core"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

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
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("degraded", "timeout", "retry"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_tool_call(self, tool: str, tenant_id: str, success: bool, duration_ms: float,
                      attempts: int = 1, error: str = None, caller_id: str = None):
        """Log a dispatched tool call."""
        details = {
            "tool": tool,
            "tenant_id": tenant_id,
            "duration_ms": round(duration_ms, 2),
            "attempts": attempts
        }
        if caller_id:
            details["caller_id"] = caller_id
        if error:
            details["error"] = error[:100]

        self.log_operation(f"tool.{tool}", "success" if success else "failed", details)

    def log_retrieval(self, tenant_id: str, provenance: str, result_count: int,
                      duration_ms: float, cached: bool = False):
        """Log the tier that answered a knowledge search."""
        details = {
            "tenant_id": tenant_id,
            "provenance": provenance,
            "result_count": result_count,
            "duration_ms": round(duration_ms, 2),
            "cached": cached
        }
        self.log_operation("retrieval.search", "success", details)

    def log_fallback(self, component: str, from_tier: str, to_tier: str, reason: str):
        """Log a silent degradation to the next fallback tier."""
        details = {
            "from": from_tier,
            "to": to_tier,
            "reason": str(reason)[:100]
        }
        self.log_operation(f"{component}.fallback", "degraded", details)

    def log_pattern_run(self, tenant_id: str, records: int, findings: int,
                        status: str = "success", details: Dict[str, Any] = None):
        """Log a pattern analysis run for one tenant."""
        log_details = {
            "tenant_id": tenant_id,
            "records": records,
            "findings": findings
        }
        if details:
            log_details.update(details)

        self.log_operation("pattern.analysis", status, log_details)

    def log_alert(self, tenant_id: str, title: str, intents: List[str]):
        """Log creation of an aggregated weakness alert."""
        self.log_operation("pattern.alert", "created", {
            "tenant_id": tenant_id,
            "title": title,
            "intents": intents
        })

    def log_heartbeat_task(self, task_name: str, start_time: float, end_time: float,
                           status: str = "success", details: Dict[str, Any] = None):
        """Log scheduler task execution."""
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


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize tool arguments and metadata before they reach the log."""
    if sensitive_fields is None:
        sensitive_fields = ['phone', 'email', 'address', 'token', 'secret', 'password']

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
