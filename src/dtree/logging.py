"""Logging utilities for dtree.

This module registers a custom DECISION log level and provides
``enable_logging()`` for turning dtree's loguru output on and off.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    that ``enable_logging()`` is the only source of dtree output on stderr. If
    the default handler was already removed, the removal is a no-op. Configure
    your own loguru handlers after importing dtree.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final

from loguru import logger

from dtree.settings import LogFormat, LogLevel, get_settings

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

# DECISION sits between INFO (20) and WARNING (30)
DECISION_LEVEL: Final[str] = "DECISION"
DECISION_LEVEL_NUMBER: Final[int] = 25

_SHORT_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)
_FULL_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> {extra}"
)


def _register_decision_level() -> None:
    """Register the DECISION log level with loguru.

    Warns instead of failing when the level already exists with a different
    number, since loguru cannot renumber an existing level.
    """
    try:
        existing_level = logger.level(DECISION_LEVEL)
    except ValueError:
        logger.level(DECISION_LEVEL, no=DECISION_LEVEL_NUMBER, icon="🌳")
    else:
        if existing_level.no != DECISION_LEVEL_NUMBER:
            msg = (
                f"DECISION level already registered with numeric value {existing_level.no},"
                f" expected {DECISION_LEVEL_NUMBER}"
            )
            warnings.warn(msg, stacklevel=2)


_register_decision_level()


class LoggingHandle:
    """Handle owning one dtree stderr handler.

    Disabling the last active handle disables the ``dtree`` logger again.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     tree.decide({"salary": 60000})

        >>> handle = enable_logging()  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Initialize the logging handle.

        Args:
            handler_id (int): The loguru handler ID from logger.add().
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    @property
    def active(self) -> bool:
        """Whether this handle still owns a handler."""
        return self.handler_id is not None

    def disable(self) -> None:
        """Remove this handle's handler; idempotent."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and disable logging."""
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of handles that have not been disabled.

        Returns:
            int: Count of active handles.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> LoggingHandle:
    """Enable dtree logging on stderr.

    Args:
        level (LogLevel | None): Minimum level to display. ``"DECISION"`` shows
            one line per completed decision plus warnings; ``"DEBUG"`` adds
            compilation and per-step records. Defaults to the ``DTREE_LOG_LEVEL``
            setting.
        log_format (LogFormat | None): ``"short"`` shows the function name,
            ``"full"`` adds module and line. Defaults to the ``DTREE_LOG_FORMAT``
            setting.

    Returns:
        LoggingHandle: Handle that removes the handler when disabled or exited.
    """
    settings = get_settings()
    level = level or settings.log_level
    log_format = log_format or settings.log_format

    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_dtree_record,
        format=_SHORT_FORMAT if log_format == "short" else _FULL_FORMAT,
    )
    return LoggingHandle(handler_id)


def _is_dtree_record(record: Record) -> bool:
    """Pass only records emitted from the dtree package.

    Args:
        record (Record): The loguru record to filter.

    Returns:
        bool: True if the record originated in dtree.
    """
    name = record["name"]
    return name is not None and (name == PACKAGE_NAME or name.startswith(f"{PACKAGE_NAME}."))
