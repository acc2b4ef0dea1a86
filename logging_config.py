# logging_config.py

import logging
import structlog
import sys
from typing import Any, Dict
from flask import has_request_context, request, g


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add Flask request context to log entries"""
    if has_request_context():
        event_dict["request_id"] = getattr(g, 'request_id', None)
        event_dict["user_id"] = getattr(g, 'user_id', None)
        event_dict["remote_addr"] = request.remote_addr
        event_dict["method"] = request.method
        event_dict["path"] = request.path
    return event_dict


def setup_logging(app_name: str = "leasing-crm", log_level: str = "INFO") -> None:
    """
    Configure structured JSON logging

    Args:
        app_name: Application name for log identification
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_request_context,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    logging.getLogger(app_name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog instance
    """
    return structlog.get_logger(name or __name__)


class SecurityLogger:
    """Dedicated security event logger"""

    def __init__(self):
        self.logger = get_logger("security")

    def log_authentication_attempt(self, username: str, success: bool, ip_address: str):
        """Log authentication attempts"""
        self.logger.info(
            "Authentication attempt",
            username=username,
            success=success,
            ip_address=ip_address,
            event_type="auth_attempt"
        )

    def log_webhook_signature_failure(self, service: str, url: str, ip_address: str = None):
        """Log webhook requests rejected for a bad signature"""
        self.logger.warning(
            "Webhook signature rejected",
            service=service,
            url=url,
            ip_address=ip_address,
            event_type="webhook_signature_failure"
        )

    def log_access_denied(self, user_id: Any, path: str, reason: str):
        self.logger.warning(
            "Access denied",
            user_id=user_id,
            path=path,
            reason=reason,
            event_type="access_denied"
        )


class PerformanceLogger:
    """Performance and monitoring logger"""

    def __init__(self):
        self.logger = get_logger("performance")

    def log_api_call(self, service: str, endpoint: str, duration_ms: float, status_code: int):
        """Log external API call performance"""
        self.logger.info(
            "External API call",
            service=service,
            endpoint=endpoint,
            duration_ms=duration_ms,
            status_code=status_code,
            event_type="api_call"
        )
