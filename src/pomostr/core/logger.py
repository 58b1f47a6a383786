"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module. Services and the client log
an event name plus keyword fields; the fields render either as key=value
pairs (default) or as a JSON object for log shippers.

The [StructuredFormatter][pomostr.core.logger.StructuredFormatter] reads the
``structured_kv`` extra attached by [Logger][pomostr.core.logger.Logger].
Installed on the root handler by the CLI, it also formats the plain
``logging.getLogger()`` records emitted by the models and utils layers.

Examples:
    ```python
    from pomostr.core.logger import Logger

    logger = Logger("rankings")
    logger.info("rankings_fetched", relays=3, events=42)
    # Output: info rankings rankings_fetched relays=3 events=42

    json_logger = Logger("rankings", json_output=True)
    json_logger.info("rankings_fetched", relays=3)
    # Output: {"timestamp": "...", "level": "info", "service": "rankings", ...}
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


_TRUNCATION_MARK = "...<truncated {} chars>"


def _truncate(value: str, limit: int | None) -> str:
    if limit and len(value) > limit:
        return value[:limit] + _TRUNCATION_MARK.format(len(value) - limit)
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values longer than ``max_value_length`` are truncated. Empty values and
    values containing spaces, ``=`` or quotes are escaped and double-quoted.

    Returns:
        Formatted string such as ``' relay=wss://a.example reason="timed out"'``,
        or an empty string when *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        text = _truncate(str(value), max_value_length)
        if not text or any(ch in text for ch in " =\"'"):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats every record as ``level name message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Mirrors the standard logging API with an extra ``**kwargs`` parameter
    on every method.

    Examples:
        ```python
        logger = Logger("client")
        logger.info("relay_connected", relay="wss://relay.damus.io")
        logger.warning("relay_error", relay="wss://nos.lol", reason="refused")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, passed to ``logging.getLogger(name)``.
            json_output: Emit JSON objects instead of key=value pairs.
            max_value_length: Maximum characters per value before
                truncation. Defaults to 1000.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "service": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not kwargs:
            return {}
        # Pre-truncate so the formatter receives clean data
        truncated: dict[str, Any] = {}
        for key, value in kwargs.items():
            text = str(value)
            if self._max_value_length and len(text) > self._max_value_length:
                truncated[key] = _truncate(text, self._max_value_length)
            else:
                truncated[key] = value
        return {"structured_kv": truncated}

    def _log(
        self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            name = "error" if exc_info else logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, name, kwargs), exc_info=exc_info)
        else:
            self._logger.log(level, msg, extra=self._make_extra(kwargs), exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
