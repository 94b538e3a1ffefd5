"""The upsert write adapter.

``execute_upsert`` performs exactly one conflict-resolving INSERT per call:

    resolve secret -> open connection -> INSERT ... ON CONFLICT ... RETURNING *
        -> classify -> emit telemetry -> close connection

Error policy:
    ConfigurationError (no secrets, no pg_string) propagates to the caller.
    Everything else is logged and returned as a failed UpsertOutcome.
    The connection handle is closed on every exit path.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .connection import ConnectionFactory, ConnectionHandle
from .exceptions import PayloadError
from .invocation import InvocationRecord
from .logging_config import mask_sensitive_values
from .outcome import UpsertOutcome
from .query_builder import build_upsert
from .secrets import ContextSecretsResolver, SecretsResolver
from .telemetry import (
    DEFAULT_MODEL_TAG,
    LoggingTelemetrySink,
    TelemetryRecord,
    TelemetrySink,
)
from .values import PayloadProcessor

logger = logging.getLogger(__name__)


@dataclass
class UpsertSettings:
    """Capabilities and overrides passed explicitly into ``execute_upsert``.

    Attributes:
        secrets_resolver: Produces the connection string for an invocation
        telemetry_sink: Receives one TelemetryRecord per executed query
        connection_factory: Opens a driver connection (asyncpg.connect if None)
        table: Overrides the node's ``table`` config when set
        on_conflict: Overrides the node's ``onConflict`` config when set
        model_tag: Client tag written to telemetry ("knex"); override only if a
            telemetry consumer expects another value
        connect_timeout: Seconds, forwarded to the connection factory
    """

    secrets_resolver: SecretsResolver = field(
        default_factory=ContextSecretsResolver
    )
    telemetry_sink: TelemetrySink = field(default_factory=LoggingTelemetrySink)
    connection_factory: Optional[ConnectionFactory] = None
    table: Optional[str] = None
    on_conflict: Optional[str] = None
    model_tag: str = DEFAULT_MODEL_TAG
    connect_timeout: Optional[float] = None

    @classmethod
    def from_env(
        cls, prefix: str = "PG_UPSERT", **overrides: Any
    ) -> "UpsertSettings":
        """Create settings from environment variables.

        Environment variables (with default PG_UPSERT prefix):
            {prefix}_CONNECT_TIMEOUT: Connect timeout in seconds
            {prefix}_MODEL_TAG: Client tag written to telemetry
        """
        timeout_raw = os.getenv(f"{prefix}_CONNECT_TIMEOUT")
        connect_timeout = None
        if timeout_raw:
            try:
                connect_timeout = float(timeout_raw)
            except ValueError:
                logger.warning(
                    f"Invalid {prefix}_CONNECT_TIMEOUT '{timeout_raw}', ignoring"
                )

        values: Dict[str, Any] = {
            "connect_timeout": connect_timeout,
            "model_tag": os.getenv(f"{prefix}_MODEL_TAG", DEFAULT_MODEL_TAG),
        }
        values.update(overrides)
        return cls(**values)


def _classify(result: Any) -> UpsertOutcome:
    """Normalize the driver result into a single outcome type.

    An Exception value is a failure, and so is None (the driver produced
    nothing) or anything that is not a sequence of rows. A row list, even an
    empty one, is a success. Never raises.
    """
    if isinstance(result, BaseException):
        return UpsertOutcome.failure(str(result))
    if result is None:
        return UpsertOutcome.failure("Upsert returned no result")
    try:
        rows = [dict(row) for row in result]
    except (TypeError, ValueError) as e:
        return UpsertOutcome.failure(
            f"Upsert returned an unreadable result ({type(result).__name__}): {e}"
        )
    return UpsertOutcome.ok(rows)


async def _emit(sink: TelemetrySink, record: TelemetryRecord) -> None:
    try:
        await sink.save_request(record)
    except Exception as e:
        # Telemetry is best effort; the upsert outcome stands
        logger.error(
            "Failed to save upsert telemetry: %s",
            mask_sensitive_values(str(e)),
        )


async def execute_upsert(
    invocation: InvocationRecord,
    settings: Optional[UpsertSettings] = None,
) -> UpsertOutcome:
    """Insert ``inputs["data"]`` into the node's table, merging on conflict.

    Args:
        invocation: Node config, runtime inputs and execution context.
        settings: Capabilities and overrides; defaults read secrets from the
            invocation context and log telemetry.

    Returns:
        UpsertOutcome with the affected rows, or the failure message.

    Raises:
        ConfigurationError: If the context has no secrets or no ``pg_string``.
    """
    settings = settings or UpsertSettings()
    node = invocation.node
    context = invocation.context

    table = settings.table or node.table
    on_conflict = settings.on_conflict or node.on_conflict
    updates = invocation.data

    dsn = settings.secrets_resolver.resolve(invocation)

    handle = ConnectionHandle(
        dsn,
        factory=settings.connection_factory,
        timeout=settings.connect_timeout,
    )
    try:
        if not table:
            raise PayloadError("Node configuration is missing 'table'")
        if not on_conflict:
            raise PayloadError("Node configuration is missing 'onConflict'")

        rows = PayloadProcessor().process(updates)
        statement = build_upsert(table, rows, on_conflict)

        await handle.open()

        start_time = int(time.time() * 1000)
        started = time.monotonic()
        result = await handle.fetch(statement.sql, *statement.args)
        duration = (time.monotonic() - started) * 1000

        outcome = _classify(result)

        await _emit(
            settings.telemetry_sink,
            TelemetryRecord.for_upsert(
                project_id=context.project_id,
                table=table,
                updates=updates,
                # Returned rows; an error value or unreadable result is absent
                result=outcome.rows if outcome.success else None,
                start_time=start_time,
                duration=duration,
                success=outcome.success,
                spell=context.current_spell,
                node_id=node.id,
                model=settings.model_tag,
            ),
        )

        if outcome.success:
            logger.debug(
                f"Upserted {len(outcome.rows)} row(s) into {table} "
                f"(node={node.id}, {duration:.1f}ms)"
            )
        else:
            logger.error(
                f"Upsert into {table} returned an error: "
                f"{mask_sensitive_values(outcome.error)}"
            )
        return outcome

    except Exception as e:
        logger.error(
            f"Upsert into {table} failed: {mask_sensitive_values(str(e))}"
        )
        return UpsertOutcome.failure(str(e))
    finally:
        try:
            await handle.close()
        except Exception as close_err:
            logger.debug(
                "Closing the upsert connection failed: %s",
                type(close_err).__name__,
            )


async def upsert(
    data: Dict[str, Any], settings: Optional[UpsertSettings] = None
) -> Dict[str, Any]:
    """Plain-dict entry point used by engines that pass ``{node, inputs, context}``.

    Returns ``{"success": True, "result": rows}`` or
    ``{"success": False, "error": message}``.
    """
    outcome = await execute_upsert(InvocationRecord.from_dict(data), settings)
    return outcome.to_dict()
