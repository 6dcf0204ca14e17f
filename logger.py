"""
Structured logging for the Robotics Troubleshooting Advisor.

Provides consistent, parseable logging throughout the application
with support for different log levels and structured output.
"""

import os
import sys
import logging
import json
from datetime import datetime
from typing import Any, Dict
from functools import wraps
import traceback


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with colors."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m"
    }

    ICONS = {
        "DEBUG": "[D]",
        "INFO": "[I]",
        "WARNING": "[W]",
        "ERROR": "[E]",
        "CRITICAL": "[!]"
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        icon = self.ICONS.get(record.levelname, "")

        timestamp = datetime.utcnow().strftime("%H:%M:%S")

        msg = f"{color}[{timestamp}] {icon} {record.levelname:8}{reset} | {record.name}: {record.getMessage()}"

        if hasattr(record, "extra_data") and record.extra_data:
            data_str = ", ".join(f"{k}={v}" for k, v in record.extra_data.items())
            msg += f" | {data_str}"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


class AppLogger:
    """Application logger with structured logging support."""

    _instances: Dict[str, 'AppLogger'] = {}

    def __init__(self, name: str, level: str = None):
        """
        Initialize logger.

        Args:
            name: Logger name (usually module name)
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.name = name
        self.level = level or os.getenv("LOG_LEVEL", "INFO")
        self.logger = logging.getLogger(name)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Setup logging handlers."""
        if self.logger.handlers:
            return  # Already configured

        self.logger.setLevel(getattr(logging, self.level.upper(), logging.INFO))

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        self.logger.addHandler(console_handler)

        # Structured JSON output is opt-in
        log_file = os.getenv("LOG_FILE")
        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(file_handler)

        self.logger.propagate = False

    def _log(self, level: int, message: str, extra: Dict[str, Any] = None) -> None:
        """Internal logging method with extra data support."""
        record = self.logger.makeRecord(
            self.name, level, "", 0, message, (), None
        )
        if extra:
            record.extra_data = extra
        self.logger.handle(record)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, kwargs if kwargs else None)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log(logging.INFO, message, kwargs if kwargs else None)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, kwargs if kwargs else None)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        if exc_info:
            kwargs["traceback"] = traceback.format_exc()
        self._log(logging.ERROR, message, kwargs if kwargs else None)

    def critical(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log critical message."""
        if exc_info:
            kwargs["traceback"] = traceback.format_exc()
        self._log(logging.CRITICAL, message, kwargs if kwargs else None)

    def request(self, method: str, path: str, status: int, duration_ms: float, **kwargs) -> None:
        """Log HTTP request."""
        self.info(
            f"{method} {path} -> {status}",
            method=method,
            path=path,
            status=status,
            duration_ms=round(duration_ms, 2),
            **kwargs
        )

    def store_op(self, backend: str, action: str, session_id: str, duration_ms: float, **kwargs) -> None:
        """Log a session store read or write."""
        self.info(
            f"Session store [{backend}] {action}",
            backend=backend,
            action=action,
            session_id=session_id,
            duration_ms=round(duration_ms, 2),
            **kwargs
        )

    def stage_transition(self, session_id: str, from_stage: str, to_stage: str, turns: int) -> None:
        """Log a conversation moving to a new stage."""
        self.info(
            f"Stage {from_stage} -> {to_stage}",
            session_id=session_id,
            from_stage=from_stage,
            to_stage=to_stage,
            turns=turns
        )

    def llm_call(self, model: str, prompt_tokens: int = None, response_tokens: int = None, **kwargs) -> None:
        """Log LLM API call."""
        self.info(
            f"LLM call to {model}",
            model=model,
            prompt_tokens=prompt_tokens,
            response_tokens=response_tokens,
            **kwargs
        )


def get_logger(name: str) -> AppLogger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        AppLogger instance
    """
    if name not in AppLogger._instances:
        AppLogger._instances[name] = AppLogger(name)
    return AppLogger._instances[name]


def log_function_call(logger: AppLogger = None):
    """
    Decorator to log function entry/exit.

    Args:
        logger: Optional logger instance
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            nonlocal logger
            if logger is None:
                logger = get_logger(func.__module__)

            func_name = func.__name__
            logger.debug(f"Entering {func_name}", args_count=len(args), kwargs_keys=list(kwargs.keys()))

            try:
                result = func(*args, **kwargs)
                logger.debug(f"Exiting {func_name}", success=True)
                return result
            except Exception as e:
                logger.error(f"Exception in {func_name}: {str(e)}", exc_info=True)
                raise

        return wrapper
    return decorator
