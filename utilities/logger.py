"""
Structured logging using structlog.
Provides JSON or console output and an authentication event logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call site information to every event
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def short_token(token: Optional[str]) -> Optional[str]:
    """Token prefix safe to put in logs."""
    if not token:
        return None
    return token[:10] + "..."


class AuthLogger:
    """
    Logger for authentication events with bound request context.
    """

    def __init__(self, name: str = "auth", logger=None):
        self.logger = logger if logger is not None else structlog.get_logger(name)

    def bind(self, **kwargs) -> "AuthLogger":
        """
        Return a new AuthLogger carrying extra context.

        The receiver is left unchanged.
        """
        return AuthLogger(logger=self.logger.bind(**kwargs))

    def log_login(self, username: str, success: bool) -> None:
        """Log a login attempt."""
        level = "info" if success else "warning"
        getattr(self.logger, level)(
            "Login attempt",
            username=username,
            success=success
        )

    def log_rejected(self, reason: str, token: Optional[str] = None, username: Optional[str] = None) -> None:
        """Log a request rejected by the authorization gate."""
        self.logger.warning(
            "Request rejected",
            reason=reason,
            token=short_token(token),
            username=username
        )

    def log_cleanup_skipped(self, username: str, error: str) -> None:
        """Log a best-effort session cleanup that could not run."""
        self.logger.debug(
            "Expired session cleanup skipped",
            username=username,
            error=error
        )

    def log_session_revoked(self, username: str, token: str) -> None:
        """Log an explicit logout."""
        self.logger.info(
            "Session revoked by user",
            username=username,
            token=short_token(token)
        )
