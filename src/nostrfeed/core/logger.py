"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that every record carries
its fields as structured data. Two renderings are supported: human-readable
key=value pairs (default) and one JSON object per line.

The [StructuredFormatter][nostrfeed.core.logger.StructuredFormatter] reads
the ``structured_kv`` extra attached by
[Logger][nostrfeed.core.logger.Logger] and appends it as key=value pairs.
When installed on the root handler it also renders the plain
``logging.getLogger("utils.transport")`` style calls used in the
``utils`` and ``nips`` layers with the same ``level name message`` prefix.

Examples:
    ```python
    from nostrfeed.core.logger import Logger

    logger = Logger("feed")
    logger.info("collect_resolved", relays=3, events=42)
    # Output: info feed collect_resolved relays=3 events=42

    logger.bind(operation="thread").debug("fetch_started")
    # Output: debug feed fetch_started operation=thread
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters. Values that are
    empty or contain whitespace, equals signs or quotes are escaped and
    wrapped in double quotes.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to a non-empty result.

    Returns:
        Formatted string, e.g. ``' relay=wss://a.example reason="not found"'``,
        or an empty string if ``kwargs`` is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = _truncate(str(value), max_value_length)
        if not s or any(c in s for c in " =\"'"):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + f"...<truncated {len(value) - max_length} chars>"
    return value


class StructuredFormatter(logging.Formatter):
    """Render every record as ``level name message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that attaches keyword arguments as fields.

    All level methods mirror the standard logging API with an added
    ``**kwargs`` parameter. Fields passed to
    [bind()][nostrfeed.core.logger.Logger.bind] are repeated on every record
    of the returned child logger.
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Name passed to ``logging.getLogger``.
            json_output: Emit JSON objects instead of key=value pairs.
            max_value_length: Truncation length for individual values.
                Defaults to 1000.
            context: Fields attached to every record.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a child logger that adds ``context`` to every record."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _format_json(self, msg: str, level: str, fields: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **fields,
        }
        return json.dumps(record, default=str)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {
            key: _truncate(str(value), self._max_value_length)
            if isinstance(value, str)
            else value
            for key, value in {**self._context, **kwargs}.items()
        }
        if self._json_output:
            level_name = logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, level_name, fields), exc_info=exc_info)
        else:
            self._logger.log(level, msg, extra={"structured_kv": fields}, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def setup_logging(level: str = "INFO", *, stream: Any = None) -> logging.Handler:
    """Install a [StructuredFormatter][nostrfeed.core.logger.StructuredFormatter] on the root logger.

    Returns:
        The installed handler, so callers (and tests) can remove it again.
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper()))
    return handler
