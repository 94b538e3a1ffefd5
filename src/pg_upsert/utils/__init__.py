"""pg-upsert Utilities."""

from .logging_utils import (
    configure_pg_upsert_logging,
    get_pg_upsert_logger,
    is_logging_configured,
    pg_upsert_logging_context,
    restore_core_sdk_warnings,
    restore_pg_upsert_logging,
    suppress_core_sdk_warnings,
)

__all__ = [
    "configure_pg_upsert_logging",
    "restore_pg_upsert_logging",
    "is_logging_configured",
    "get_pg_upsert_logger",
    "pg_upsert_logging_context",
    "suppress_core_sdk_warnings",
    "restore_core_sdk_warnings",
]
