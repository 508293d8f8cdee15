"""Logging for the storefront client.

Two layers, as everywhere else in the project: stdlib handlers decide where
records go (stderr plus rotating files under ``logs/``), structlog decides
what they look like (JSON outside development, a rich console renderer in
development). Payment credentials are masked before any renderer runs.
"""

import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path
from typing import Any

import structlog

from storefront.config import StorefrontSettings

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

SECRET_KEYS = frozenset({"client_secret", "authorization", "token", "api_token", "publishable_key"})
MASK = "***"

# Client secrets look like ``pi_<id>_secret_<random>``; the intent id part is safe to keep.
_EMBEDDED_SECRET = re.compile(r"\b(pi_\w+?)_secret_\w+")


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if key in SECRET_KEYS:
            event_dict[key] = MASK
        elif isinstance(value, str) and "_secret_" in value:
            event_dict[key] = _EMBEDDED_SECRET.sub(rf"\1_secret_{MASK}", value)
    return event_dict


def get_log_level(environment: str | None = None) -> str:
    if environment is None:
        environment = os.getenv("STOREFRONT_ENV") or os.getenv("ENVIRONMENT") or "development"
    return os.getenv("LOG_LEVEL", _LEVELS.get(environment.lower(), "INFO"))


def _rotating_handler(path: Path, level: int | str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(level: str, log_dir: Path) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    # stdout belongs to the CLI's own output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(log_dir / "storefront.log", level))
    # Charged-without-order cases are logged at error level; support reads this file.
    root_logger.addHandler(_rotating_handler(log_dir / "storefront_error.log", logging.ERROR))

    for noisy in ("protean", "httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_structlog(environment: str) -> None:
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
    ]

    if environment in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        # No locals: gateway frames hold card details.
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: StorefrontSettings, log_dir: Path | None = None) -> None:
    """Configure stdlib handlers and the structlog chain for ``settings.environment``."""
    environment = settings.environment.lower()
    setup_stdlib_logging(get_log_level(environment), log_dir or Path("logs"))
    setup_structlog(environment)


def add_context(**kwargs: Any) -> None:
    """Bind values to every log line emitted from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
