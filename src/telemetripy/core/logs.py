"""Structured logging helpers built on the standard library logging module.

Library code only obtains loggers; attaching handlers is left to the
application (see configure_logging).
"""

import logging
from typing import Any

LogValue = str | int | float | bool | None

DIAGNOSTICS_LOGGER_NAME = "telemetripy.diagnostics"

_DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StructuredLogger:
    """Logger wrapper that carries bound structured fields.

    Fields are passed to the underlying logger as ``extra`` so handlers and
    formatters can read them as LogRecord attributes.

    Example:
        ```python
        logger = get_logger(__name__)
        logger.with_fields(path="/api", status_code=500).warning("Slow request")
        ```
    """

    def __init__(
        self, logger: logging.Logger, fields: dict[str, LogValue] | None = None
    ) -> None:
        self._logger = logger
        self._fields: dict[str, LogValue] = dict(fields or {})

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def fields(self) -> dict[str, LogValue]:
        return dict(self._fields)

    def with_fields(self, **fields: LogValue) -> "StructuredLogger":
        """Return a new logger with additional bound fields."""
        return StructuredLogger(self._logger, {**self._fields, **fields})

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, message, extra=self._fields, **kwargs)

    def debug(self, message: str) -> None:
        self._log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self._log(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._log(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._log(logging.ERROR, message)

    def exception(self, message: str) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, message, exc_info=True)


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger for the given module name."""
    return StructuredLogger(logging.getLogger(name))


def log_exception(message: str, **fields: LogValue) -> None:
    """Log the active exception to the diagnostics logger.

    Must be called from within an ``except`` block.

    Args:
        message: Description of the failed operation.
        **fields: Additional structured fields.
    """
    get_logger(DIAGNOSTICS_LOGGER_NAME).with_fields(**fields).exception(message)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach a console handler to the package logger.

    Intended for applications and examples; calling it twice does not add a
    second handler.
    """
    package_logger = logging.getLogger("telemetripy")
    package_logger.setLevel(level)
    if any(getattr(h, "_telemetripy", False) for h in package_logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
    handler._telemetripy = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
