"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that every policy decision
and administrative command is logged as an event name followed by context
fields, either as human-readable ``key=value`` pairs (default) or as one JSON
object per line for log aggregators.

Credentials never reach the log: values passed under a key listed in
``REDACTED_KEYS`` are replaced by a placeholder before formatting. Pubkeys
are public identifiers and are logged as-is.

The [StructuredFormatter][relaypolicy.core.logger.StructuredFormatter] is a
stdlib ``logging.Formatter`` that reads the ``structured_kv`` extra attached by
[Logger][relaypolicy.core.logger.Logger]. Installed on the root handler by
[setup_logging()][relaypolicy.core.logger.setup_logging], it unifies output
from ``Logger`` and from plain ``logging.getLogger()`` calls in the models
and utils layers.

Examples:
    ```python
    from relaypolicy.core.logger import Logger

    logger = Logger("authorization")
    logger.info("write_authorized", hostname="nostr.example.com", status="full")
    # Output: info authorization write_authorized hostname=nostr.example.com status=full
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


REDACTED_KEYS: frozenset[str] = frozenset({"authorization", "credential", "password"})
_REDACTED = "<redacted>"


def _clip(value: Any, max_value_length: int | None) -> str:
    s = str(value)
    if max_value_length and len(s) > max_value_length:
        return s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
    return s


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters. Values that are
    empty or contain whitespace, equals signs, or quotes are escaped and
    wrapped in double quotes.

    Returns:
        Formatted string, e.g. ``' pubkey=ab12... reason="spam bot"'``, or the
        empty string when ``kwargs`` is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = _clip(value, max_value_length)
        if not s or any(c in s for c in " =\"'"):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats every log record as ``level name message key=value ...``.

    Records without a ``structured_kv`` extra are emitted with the same
    prefix and no trailing pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as context fields.

    All public methods mirror the standard logging API with an added
    ``**kwargs`` parameter carrying the context.

    Examples:
        ```python
        logger = Logger("acl")
        logger.info("pubkey_banned", relay_id="r1", pubkey="ab" * 32)

        json_logger = Logger("acl", json_output=True)
        json_logger.info("pubkey_banned", relay_id="r1")
        # Output: {"timestamp": "...", "level": "info", "service": "acl", ...}
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
            max_value_length: Maximum characters per value before truncation.
                Defaults to 1000.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def _context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        context: dict[str, Any] = {}
        for key, value in kwargs.items():
            if key in REDACTED_KEYS:
                context[key] = _REDACTED
            elif isinstance(value, str) and len(value) > self._max_value_length:
                context[key] = _clip(value, self._max_value_length)
            else:
                context[key] = value
        return context

    def _emit(
        self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        context = self._context(kwargs)
        if self._json_output:
            payload = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **context,
            }
            self._logger.log(level, json.dumps(payload, default=str), exc_info=exc_info)
        else:
            extra = {"structured_kv": context} if context else {}
            self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=True)


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with structured formatting.

    Installs a [StructuredFormatter][relaypolicy.core.logger.StructuredFormatter]
    on a fresh stderr handler so that ``Logger`` output and plain
    ``logging.getLogger()`` output share one format.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper()))
