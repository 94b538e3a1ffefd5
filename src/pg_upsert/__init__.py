"""
pg-upsert - Conflict-resolving PostgreSQL write node for Kailash workflows.

One call, one statement:

- core/adapter.py: execute_upsert() and the UpsertSettings capability struct
- core/query_builder.py: INSERT ... ON CONFLICT ... DO UPDATE ... RETURNING *
- core/connection.py: per-call connection handle (idle -> connected -> closed)
- core/telemetry.py: request telemetry records and sinks
- core/logging_config.py: credential masking for log output
- nodes/upsert_node.py: PostgresUpsertNode (Kailash AsyncNode)
"""

from .core.adapter import UpsertSettings, execute_upsert, upsert
from .core.connection import ConnectionHandle, ConnectionState
from .core.exceptions import (
    ConfigurationError,
    InvalidIdentifierError,
    MissingSecretError,
    MissingSecretsError,
    PayloadError,
    UpsertError,
)
from .core.invocation import ExecutionContext, InvocationRecord, ModuleContext, NodeInfo
from .core.logging_config import (
    DEFAULT_SENSITIVE_PATTERNS,
    LoggingConfig,
    SensitiveMaskingFilter,
    mask_sensitive_values,
)
from .core.outcome import UpsertOutcome
from .core.secrets import ContextSecretsResolver, EnvSecretsResolver, SecretsResolver
from .core.telemetry import (
    CallableTelemetrySink,
    InMemoryTelemetrySink,
    LoggingTelemetrySink,
    TelemetryRecord,
    TelemetrySink,
)
from .core.values import ColumnValue, PayloadProcessor, ValueKind
from .nodes.upsert_node import PostgresUpsertNode
from .utils.logging_utils import (
    configure_pg_upsert_logging,
    get_pg_upsert_logger,
    is_logging_configured,
    pg_upsert_logging_context,
    restore_pg_upsert_logging,
    suppress_core_sdk_warnings,
)

# Suppress verbose Kailash SDK warnings on import
suppress_core_sdk_warnings()

__version__ = "0.1.0"

__all__ = [
    "execute_upsert",
    "upsert",
    "UpsertSettings",
    "UpsertOutcome",
    "PostgresUpsertNode",
    "InvocationRecord",
    "NodeInfo",
    "ExecutionContext",
    "ModuleContext",
    "ConnectionHandle",
    "ConnectionState",
    "ColumnValue",
    "ValueKind",
    "PayloadProcessor",
    "SecretsResolver",
    "ContextSecretsResolver",
    "EnvSecretsResolver",
    "TelemetryRecord",
    "TelemetrySink",
    "InMemoryTelemetrySink",
    "LoggingTelemetrySink",
    "CallableTelemetrySink",
    # Errors
    "UpsertError",
    "ConfigurationError",
    "MissingSecretsError",
    "MissingSecretError",
    "PayloadError",
    "InvalidIdentifierError",
    # Logging
    "LoggingConfig",
    "SensitiveMaskingFilter",
    "mask_sensitive_values",
    "DEFAULT_SENSITIVE_PATTERNS",
    "configure_pg_upsert_logging",
    "restore_pg_upsert_logging",
    "is_logging_configured",
    "get_pg_upsert_logger",
    "pg_upsert_logging_context",
]
