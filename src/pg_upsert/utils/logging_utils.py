"""
Configure pg-upsert logging and quiet verbose Kailash SDK warnings.

This module provides utilities to:
1. Suppress console warnings from the Kailash SDK node registry
2. Configure pg-upsert logging levels and credential masking centrally
3. Provide a context manager for temporary logging configuration
4. Return properly prefixed loggers
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from pg_upsert.core.logging_config import LoggingConfig, SensitiveMaskingFilter

ROOT_LOGGER = "pg_upsert"

# Loggers configured alongside the root one
_MANAGED_LOGGERS = (
    "pg_upsert.core.adapter",
    "pg_upsert.core.connection",
    "pg_upsert.nodes.upsert_node",
    "pg_upsert.telemetry",
)

# Original logger state (level, propagate) for restore
_original_logger_state: Dict[str, Any] = {}

_logging_configured: bool = False


def suppress_core_sdk_warnings() -> None:
    """Silence Kailash "Overwriting existing node registration" warnings.

    Usage:
        from pg_upsert.utils.logging_utils import suppress_core_sdk_warnings
        suppress_core_sdk_warnings()
    """
    logging.getLogger("kailash.nodes.base").setLevel(logging.ERROR)
    logging.getLogger("kailash.resources.registry").setLevel(logging.ERROR)


def restore_core_sdk_warnings() -> None:
    """Restore Kailash SDK warning levels to WARNING."""
    logging.getLogger("kailash.nodes.base").setLevel(logging.WARNING)
    logging.getLogger("kailash.resources.registry").setLevel(logging.WARNING)


def _has_masking(filters) -> bool:
    return any(isinstance(f, SensitiveMaskingFilter) for f in filters)


def _remember(logger: logging.Logger) -> None:
    if logger.name not in _original_logger_state:
        _original_logger_state[logger.name] = {
            "level": logger.level,
            "propagate": logger.propagate,
        }


def configure_pg_upsert_logging(
    config: Optional[LoggingConfig] = None,
    level: Optional[int] = None,
) -> None:
    """Configure pg-upsert logging.

    Sets the level of the ``pg_upsert`` loggers and installs a
    SensitiveMaskingFilter on them so connection strings never reach the
    output in clear text.

    Args:
        config: LoggingConfig instance. If None, uses LoggingConfig.from_env().
        level: Explicit log level. Overrides config.level.

    Usage:
        configure_pg_upsert_logging()
        configure_pg_upsert_logging(LoggingConfig.development())
        configure_pg_upsert_logging(level=logging.DEBUG)
    """
    global _logging_configured

    if config is None:
        config = LoggingConfig.from_env()
    effective_level = level if level is not None else config.level

    root = logging.getLogger(ROOT_LOGGER)

    # Logger filters only see records created on that logger, so every
    # managed logger gets its own masking filter
    for logger in [root] + [logging.getLogger(n) for n in _MANAGED_LOGGERS]:
        _remember(logger)
        logger.setLevel(effective_level)
        if config.mask_sensitive and not _has_masking(logger.filters):
            logger.addFilter(SensitiveMaskingFilter(config))
    root.propagate = config.propagate

    if config.mask_sensitive:
        for handler in root.handlers:
            if not _has_masking(handler.filters):
                handler.addFilter(SensitiveMaskingFilter(config))

    suppress_core_sdk_warnings()
    _logging_configured = True

    root.debug(
        f"pg-upsert logging configured: level={logging.getLevelName(effective_level)}"
    )


def restore_pg_upsert_logging() -> None:
    """Restore logger levels and remove masking filters. Safe to call twice."""
    global _logging_configured

    for name, state in _original_logger_state.items():
        logger = logging.getLogger(name)
        logger.setLevel(state["level"])
        logger.propagate = state["propagate"]
        for f in [f for f in logger.filters if _has_masking([f])]:
            logger.removeFilter(f)
        for handler in logger.handlers:
            for f in [f for f in handler.filters if _has_masking([f])]:
                handler.removeFilter(f)

    _original_logger_state.clear()
    _logging_configured = False
    restore_core_sdk_warnings()


def is_logging_configured() -> bool:
    """True once configure_pg_upsert_logging() has been called."""
    return _logging_configured


def get_pg_upsert_logger(name: str) -> logging.Logger:
    """Get a logger under the ``pg_upsert`` prefix.

    Usage:
        get_pg_upsert_logger("my_module")       # pg_upsert.my_module
        get_pg_upsert_logger("")                # pg_upsert
        get_pg_upsert_logger("pg_upsert.core")  # pg_upsert.core
    """
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def pg_upsert_logging_context(
    config: Optional[LoggingConfig] = None,
    level: Optional[int] = None,
) -> Iterator[None]:
    """Apply a logging configuration for the duration of a block.

    The exact logger state found on entry (levels, propagation, filters) is
    put back on exit, so contexts nest and an outer configuration survives.

    Usage:
        with pg_upsert_logging_context(level=logging.DEBUG):
            await execute_upsert(invocation)
    """
    global _logging_configured

    snapshot = {}
    for name in (ROOT_LOGGER,) + _MANAGED_LOGGERS:
        logger = logging.getLogger(name)
        snapshot[name] = (
            logger.level,
            logger.propagate,
            list(logger.filters),
            {handler: list(handler.filters) for handler in logger.handlers},
        )
    saved_state = dict(_original_logger_state)
    saved_configured = _logging_configured

    try:
        configure_pg_upsert_logging(config=config, level=level)
        yield
    finally:
        for name, (lvl, propagate, filters, handler_filters) in snapshot.items():
            logger = logging.getLogger(name)
            logger.setLevel(lvl)
            logger.propagate = propagate
            logger.filters = filters
            for handler, kept in handler_filters.items():
                handler.filters = kept

        _original_logger_state.clear()
        _original_logger_state.update(saved_state)
        _logging_configured = saved_configured
        if not saved_configured:
            restore_core_sdk_warnings()
