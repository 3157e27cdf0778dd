"""Structured logging for glyphcam.

Records carry a ``structured_data`` dict next to the message. Fields come
from two places: keyword arguments on the logging call and the ambient
:class:`LogContext`. Both formatters render them, as ``key=value`` pairs
or as one JSON object per line.

The curses screen owns the terminal while the UI runs, so the CLI points
:func:`configure_logging` at a file. Tests point it at a ``StringIO``.

Example:
    logger = get_logger(__name__)
    logger.info("Camera started", camera_index=0, width=640, height=480)

    with LogContext(camera_index=0, operation="stop"):
        logger.warning("Hardware stop failed", attempt=2)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

ROOT_LOGGER_NAME = "glyphcam"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


class StructuredLogRecord(logging.LogRecord):
    """LogRecord with a ``structured_data`` dict.

    ``structured_data`` may be passed as a keyword; it defaults to an empty
    dict so formatters never need to guard against it.
    """

    structured_data: dict[str, Any]

    def __init__(
        self,
        name: str,
        level: int,
        pathname: str,
        lineno: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None,
        exc_info: Any,
        func: str | None = None,
        sinfo: str | None = None,
        structured_data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(name, level, pathname, lineno, msg, args, exc_info, func, sinfo)
        self.structured_data = dict(structured_data or {})


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword fields.

    ``Logger.info`` and friends forward unknown keywords to ``_log``, so
    overriding ``_log`` alone is enough:

        logger.warning("Stop failed", camera_index=0, attempt=2)

    Keyword fields win over LogContext fields of the same name.
    """

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any],
        exc_info: Any = None,
        extra: MutableMapping[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        merged_extra = dict(extra or {})
        merged_extra["structured_data"] = {**_log_context.get(), **fields}
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=merged_extra,
            stack_info=stack_info,
            # Skip this frame so %(funcName)s names the real caller.
            stacklevel=stacklevel + 1,
        )


class StructuredFormatter(logging.Formatter):
    """Text formatter: ``<fmt> | key=value key=value``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        super().__init__(fmt or DEFAULT_FORMAT, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "structured_data", None)
        if not (self.include_structured and fields):
            return line
        pairs = " ".join(f"{key}={_format_value(value)}" for key, value in fields.items())
        return f"{line} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Always present: ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``. Structured fields are merged in at the top level and an
    ``exception`` key is added when the record carries one. Values JSON
    cannot encode are written with ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "structured_data", {}))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _format_value(value: Any) -> str:
    """Render one structured value for text output.

    Examples:
        >>> _format_value(None)
        'null'
        >>> _format_value("camera busy")
        '"camera busy"'
        >>> _format_value({"rows": 24})
        '{"rows": 24}'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        return f'"{value}"' if " " in value else value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


class LogContext:
    """Attach fields to every record logged inside a ``with`` block.

    Contexts nest and inner values shadow outer ones. The values live in a
    context variable, so the capture thread, the device worker and the
    router each see only their own.

    Example:
        with LogContext(camera_index=0):
            with LogContext(operation="force_stop", attempt=1):
                logger.warning("Stop rejected by driver")
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __repr__(self) -> str:
        return f"LogContext({self._fields!r})"

    def __enter__(self) -> LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *exc: object) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    log_file: Path | str | None = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Install the single handler on the ``glyphcam`` logger.

    Only the first call has an effect unless ``force`` is set, which drops
    the existing handler first. The capture thread may log before the CLI
    finishes configuring, so setup runs under a lock.

    Args:
        level: Minimum level, as an int or a name such as ``"DEBUG"``.
        json_format: Write JSON lines instead of text.
        stream: Destination when ``log_file`` is not given; stderr if None.
        log_file: Append records to this file. Takes precedence over
            ``stream``.
        include_structured: Append ``key=value`` fields in text mode.
        force: Replace an existing configuration.
    """
    with _config_lock:
        if force:
            _remove_handlers()
        _install_handler(level, json_format, stream, log_file, include_structured)


def _install_handler(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    log_file: Path | str | None = None,
    include_structured: bool = True,
) -> None:
    # Caller holds _config_lock.
    global _configured
    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(Path(log_file), encoding="utf-8")
    else:
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        JSONFormatter()
        if json_format
        else StructuredFormatter(include_structured=include_structured)
    )

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def _remove_handlers() -> None:
    # Caller holds _config_lock.
    global _configured
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    _configured = False


def reset_logging() -> None:
    """Close and remove glyphcam handlers so the next call reconfigures."""
    with _config_lock:
        _remove_handlers()


def get_logger(name: str) -> StructuredLogger:
    """Return the structured logger for ``name``, configuring defaults once.

    Loggers created before ``setLoggerClass`` ran would be plain Loggers,
    so the default configuration is installed on first use.
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _install_handler()
    return cast(StructuredLogger, logging.getLogger(name))
