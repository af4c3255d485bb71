"""
Simple logging configuration.
"""
import logging
import logging.handlers
from enum import Enum
from pathlib import Path
from typing import Optional


class LogCategory(str, Enum):
    """Enumeration for standardized log categories."""
    APP = "coldstore"
    ERRORS = "coldstore.errors"
    STATE = "coldstore.state"


DEFAULT_LOG_LEVEL = logging.INFO

# Fields that should be masked in logs
SENSITIVE_FIELDS = {
    'token',
    'authorization',
    'secret',
    'read_key',
    'readkey',
    'write_key',
    'writekey',
    'api_key',
    'apikey',
    'blob_read_write_token',
}


def _sanitize_data(data):
    """
    Sanitize data to mask sensitive fields.

    Recursively processes dictionaries, lists, and strings. Query-string
    credentials (``read_key=...``) in URLs are masked as well.

    Args:
        data: Data to sanitize (dict, list, str, or any other type)

    Returns:
        Sanitized version of the data with sensitive fields masked
    """
    if data is None:
        return data

    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
                sanitized[key] = '***MASKED***'
            else:
                sanitized[key] = _sanitize_data(value)
        return sanitized

    if isinstance(data, list):
        return [_sanitize_data(item) for item in data]

    if isinstance(data, str):
        if '://' in data and '?' in data:
            base, query = data.split('?', 1)
            params = []
            for param in query.split('&'):
                name = param.split('=', 1)[0]
                if any(sensitive in name.lower() for sensitive in SENSITIVE_FIELDS):
                    params.append(f"{name}=***")
                else:
                    params.append(param)
            return f"{base}?{'&'.join(params)}"

        # Very long alphanumeric strings are most likely tokens
        if len(data) > 64 and all(c.isalnum() or c in '-_' for c in data):
            return '***MASKED***'

        return data

    return data


def _resolve_log_level(level_value, default=DEFAULT_LOG_LEVEL):
    """Resolve string/integer log level inputs to a logging level."""
    if isinstance(level_value, str):
        candidate = level_value.strip()
        if not candidate:
            return default, True
        if candidate.isdigit():
            level_value = int(candidate)
        else:
            candidate = candidate.upper()
            try:
                return logging._checkLevel(candidate), False
            except (ValueError, TypeError):
                return default, True
    try:
        return logging._checkLevel(level_value), False
    except (ValueError, TypeError):
        return default, True


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None, verbose: bool = False):
    """Setup logging configuration.

    Args:
        log_level: Level name or number from settings
        log_dir: Directory for the rotating log file (console only when None)
        verbose: Force DEBUG regardless of ``log_level``
    """
    # Clear existing handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    resolved_level, used_default_level = _resolve_log_level(log_level)
    if verbose:
        resolved_level = logging.DEBUG

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(resolved_level)
    root_logger.addHandler(console_handler)

    log_file = None
    if log_dir:
        log_path = Path(log_dir)
        try:
            log_path.mkdir(parents=True, exist_ok=True)
            log_file = log_path / "coldstore.log"
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(resolved_level)
            root_logger.addHandler(file_handler)
        except OSError:
            log_file = None

    root_logger.setLevel(resolved_level)
    logging.getLogger(LogCategory.APP).setLevel(resolved_level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if used_default_level:
        logger.warning(
            "Invalid log level '%s' in configuration, falling back to INFO",
            log_level
        )
    logger.debug("Logging configured - Level: %s", logging.getLevelName(resolved_level))
    if log_file:
        logger.debug(f"File logging: {log_file}")


def _log_with_context(logger: logging.Logger, level: int, message: str, exc_info: bool = False, **kwargs):
    """Internal helper to format logs with extra context.

    Args:
        logger: Logger instance to use
        level: Logging level
        message: Log message
        exc_info: Whether to include exception traceback
        **kwargs: Additional context to append to message (e.g., media_id, path)
                   Sensitive fields will be automatically masked
    """
    log_message = message

    if kwargs:
        sanitized_kwargs = _sanitize_data(kwargs)
        extra_context = ", ".join(f"{k}={v}" for k, v in sanitized_kwargs.items())
        log_message = f"{log_message} ({extra_context})"

    logger.log(level, log_message, exc_info=exc_info)


def log_info(message: str, **kwargs):
    """Log info messages."""
    logger = logging.getLogger(LogCategory.APP)
    _log_with_context(logger, logging.INFO, message, **kwargs)


def log_debug(message: str, **kwargs):
    """Log debug messages."""
    logger = logging.getLogger(LogCategory.APP)
    _log_with_context(logger, logging.DEBUG, message, **kwargs)


def log_warning(message: str, **kwargs):
    """Log warning messages."""
    logger = logging.getLogger(LogCategory.APP)
    _log_with_context(logger, logging.WARNING, message, **kwargs)


def log_error(error: Exception | str, **kwargs):
    """Log errors.

    Args:
        error: Exception object or error message string
        **kwargs: Additional context (e.g., media_id, object_id)
    """
    logger = logging.getLogger(LogCategory.ERRORS)
    message = f"Error: {str(error)}"
    # exc_info should only be True if we have an actual Exception
    exc_info = isinstance(error, Exception)
    _log_with_context(logger, logging.ERROR, message, exc_info=exc_info, **kwargs)
