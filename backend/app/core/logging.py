"""
Structured logging configuration for DentalDesk.

Console output in development, JSON lines in production. Patient contact
details and credentials never reach the log output: the ``redact_sensitive``
processor masks them wherever they appear in an event.
"""

import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "dentaldesk"

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "current_password",
        "new_password",
        "hashed_password",
        "access_token",
        "token",
        "email",
        "phone",
    }
)
REDACTED = "***"


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every entry with the application name."""
    event_dict["app"] = APP_NAME
    return event_dict


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if k in SENSITIVE_KEYS and v is not None else _redact(v)
            for k, v in value.items()
        }
    return value


def redact_sensitive(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credentials and patient contact details, including nested dicts."""
    return _redact(event_dict)


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog on top of the standard library logger.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of the colored console format
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        redact_sensitive,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Attach values (request id, route) to every entry logged by this request."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


class AuditLogger:
    """
    Audit trail of the clinic backend.

    Records who touched which patient record, appointment or attachment,
    every authentication attempt, and every request refused by the access
    policy. Entries go to the ``audit`` logger tagged with ``audit_type``.
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def log_access(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        action: str,
        success: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        """``resource_type`` is one of patient, attachment, appointment, user;
        ``action`` is an upper-case verb such as VIEW, UPLOAD or DELETE."""
        self.logger.info(
            "resource_access",
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            success=success,
            details=details or {},
            audit_type="access",
        )

    def log_access_denied(self, user_id: str, action: str, roles: list[str]) -> None:
        self.logger.warning(
            "access_denied",
            user_id=user_id,
            action=action,
            roles=roles,
            audit_type="authorization",
        )

    def log_authentication(
        self,
        user_id: str | None,
        username: str,
        success: bool,
        method: str = "password",
        ip_address: str | None = None,
        failure_reason: str | None = None,
    ) -> None:
        """Login attempts, logouts and password changes (``method``).

        ``user_id`` is None when the username matched no account.
        """
        log = self.logger.info if success else self.logger.warning
        log(
            "authentication",
            user_id=user_id,
            username=username,
            success=success,
            method=method,
            ip_address=ip_address,
            failure_reason=failure_reason,
            audit_type="authentication",
        )


audit_logger = AuditLogger()
