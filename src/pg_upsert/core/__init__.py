"""pg-upsert Core Components."""

from .adapter import UpsertSettings, execute_upsert, upsert
from .connection import ConnectionHandle, ConnectionState
from .invocation import ExecutionContext, InvocationRecord, ModuleContext, NodeInfo
from .logging_config import (
    DEFAULT_SENSITIVE_PATTERNS,
    LoggingConfig,
    SensitiveMaskingFilter,
    mask_sensitive_values,
)
from .outcome import UpsertOutcome
from .query_builder import UpsertStatement, build_upsert
from .telemetry import InMemoryTelemetrySink, TelemetryRecord

__all__ = [
    "execute_upsert",
    "upsert",
    "UpsertSettings",
    "UpsertOutcome",
    "UpsertStatement",
    "build_upsert",
    "ConnectionHandle",
    "ConnectionState",
    "InvocationRecord",
    "NodeInfo",
    "ExecutionContext",
    "ModuleContext",
    "TelemetryRecord",
    "InMemoryTelemetrySink",
    "LoggingConfig",
    "SensitiveMaskingFilter",
    "mask_sensitive_values",
    "DEFAULT_SENSITIVE_PATTERNS",
]
