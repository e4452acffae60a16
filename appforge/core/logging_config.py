"""
AppForge - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from appforge.core.config import settings


# Context variable for per-session tracing
session_id_var: ContextVar[str] = ContextVar('session_id', default='')


def get_session_id() -> str:
    """Get current scaffold session ID from context"""
    return session_id_var.get() or ''


def set_session_id(session_id: str) -> None:
    """Set scaffold session ID in context"""
    session_id_var.set(session_id)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        session_id = get_session_id()
        if session_id:
            log_data["session_id"] = session_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in ['name', 'msg', 'args', 'created', 'filename', 'funcName',
                          'levelname', 'levelno', 'lineno', 'module', 'msecs',
                          'pathname', 'process', 'processName', 'relativeCreated',
                          'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
                          'message', 'taskName', 'session_id']:
                if not key.startswith('_'):
                    log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Formatter that includes the scaffold session id, used for readable development output
    """

    def format(self, record: logging.LogRecord) -> str:
        record.session_id = get_session_id() or '-'
        return super().format(record)


class AppForgeLogger(logging.Logger):
    """
    Custom logger with convenience methods for structured logging
    """

    def log_command(self, command: str, correlation_id: str, success: bool,
                    error_code: Optional[str] = None, **kwargs) -> None:
        """Log the outcome of a command sent to the execution endpoint"""
        level = logging.DEBUG if success else logging.WARNING
        preview = command if len(command) <= 80 else command[:77] + "..."
        self.log(
            level,
            f"Command {correlation_id} {'ok' if success else 'failed'}: {preview}" +
            (f" ({error_code})" if error_code else ""),
            extra={
                "event_type": "command",
                "correlation_id": correlation_id,
                "command_success": success,
                "error_code": error_code,
                **kwargs
            }
        )

    def log_connection_event(self, event: str, url: str, attempt: int = 0,
                             **kwargs) -> None:
        """Log connection lifecycle events"""
        self.info(
            f"Connection {event}: {url}" + (f" (attempt {attempt})" if attempt else ""),
            extra={
                "event_type": "connection",
                "connection_event": event,
                "endpoint": url,
                "attempt": attempt,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def setup_logging() -> AppForgeLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(AppForgeLogger)

    logger = logging.getLogger("appforge")
    logger.__class__ = AppForgeLogger  # Ensure it's our custom class
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logger.handlers.clear()

    is_production = settings.ENVIRONMENT == "production"

    if is_production:
        formatter: logging.Formatter = JSONFormatter()
        file_formatter: logging.Formatter = formatter
    else:
        formatter = ContextualFormatter("%(levelname)-8s | %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(session_id)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    return logger


# Create logger instance
logger: AppForgeLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_session_id',
    'set_session_id',
    'AppForgeLogger',
]
