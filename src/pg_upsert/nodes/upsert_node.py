"""PostgreSQL upsert node for Kailash workflows.

Wraps ``execute_upsert`` in an AsyncNode so a workflow graph can write one
row (or a batch of rows) with ``INSERT ... ON CONFLICT ... DO UPDATE``.

Workflow context keys read by the node:
    secrets        -> mapping holding ``pg_string`` (unless passed as input)
    project_id     -> project owning the secrets
    current_spell  -> enclosing workflow identifier
    telemetry_sink -> sink for request telemetry (unless given to the node)
"""

import logging
from typing import Any, Dict, Optional

from kailash.nodes.base import NodeParameter
from kailash.nodes.base_async import AsyncNode
from kailash.sdk_exceptions import NodeExecutionError

from pg_upsert.core.adapter import UpsertSettings, execute_upsert
from pg_upsert.core.connection import ConnectionFactory
from pg_upsert.core.exceptions import ConfigurationError
from pg_upsert.core.invocation import (
    ExecutionContext,
    InvocationRecord,
    ModuleContext,
    NodeInfo,
)
from pg_upsert.core.secrets import SecretsResolver
from pg_upsert.core.telemetry import TelemetrySink

logger = logging.getLogger(__name__)


class PostgresUpsertNode(AsyncNode):
    """Node that upserts its ``data`` input into a PostgreSQL table.

    Opens a dedicated connection for each run, executes a single
    ``INSERT ... ON CONFLICT (<on_conflict>) DO UPDATE ... RETURNING *`` and
    closes the connection. Query failures come back as
    ``{"success": False, "error": ...}``; missing secrets raise
    NodeExecutionError.
    """

    def __init__(
        self,
        table: Optional[str] = None,
        on_conflict: Optional[str] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        secrets_resolver: Optional[SecretsResolver] = None,
        **kwargs,
    ):
        self.table = table
        self.on_conflict = on_conflict
        self.telemetry_sink = telemetry_sink
        self.connection_factory = connection_factory
        self.secrets_resolver = secrets_resolver
        super().__init__(**kwargs)

    def get_parameters(self) -> Dict[str, NodeParameter]:
        """Define parameters for the upsert."""
        return {
            "table": NodeParameter(
                name="table",
                type=str,
                description="Target table, optionally schema-qualified",
                required=False,
            ),
            "on_conflict": NodeParameter(
                name="on_conflict",
                type=str,
                description=(
                    "Conflict target: a column (e.g. 'email'), comma-separated "
                    "columns (e.g. 'order_id,product_id') or 'constraint:<name>'"
                ),
                required=False,
            ),
            "data": NodeParameter(
                name="data",
                type=Any,
                description="Row to write (column -> value) or a list of rows",
                required=True,
            ),
            "project_id": NodeParameter(
                name="project_id",
                type=str,
                description="Project owning the connection secrets",
                required=False,
            ),
            "spell": NodeParameter(
                name="spell",
                type=str,
                description="Enclosing workflow identifier for telemetry",
                required=False,
            ),
            "secrets": NodeParameter(
                name="secrets",
                type=dict,
                description="Secrets mapping containing 'pg_string'",
                required=False,
            ),
        }

    def _node_identifier(self) -> Any:
        return getattr(self, "id", None) or self.__class__.__name__

    def _build_invocation(self, kwargs: Dict[str, Any]) -> InvocationRecord:
        table = kwargs.get("table") or self.table
        on_conflict = kwargs.get("on_conflict") or self.on_conflict
        if not table:
            raise NodeExecutionError("PostgresUpsertNode requires a 'table'")
        if not on_conflict:
            raise NodeExecutionError(
                "PostgresUpsertNode requires an 'on_conflict' target"
            )

        secrets = kwargs.get("secrets")
        if secrets is None:
            secrets = self.get_workflow_context("secrets")

        return InvocationRecord(
            node=NodeInfo(
                id=self._node_identifier(), table=table, on_conflict=on_conflict
            ),
            inputs={"data": kwargs.get("data")},
            context=ExecutionContext(
                project_id=kwargs.get("project_id")
                or self.get_workflow_context("project_id"),
                current_spell=kwargs.get("spell")
                or self.get_workflow_context("current_spell"),
                module=ModuleContext(secrets=secrets),
            ),
        )

    def _build_settings(self) -> UpsertSettings:
        settings = UpsertSettings.from_env(
            connection_factory=self.connection_factory,
        )
        sink = self.telemetry_sink
        if sink is None:
            sink = self.get_workflow_context("telemetry_sink")
        if sink is not None:
            settings.telemetry_sink = sink
        if self.secrets_resolver is not None:
            settings.secrets_resolver = self.secrets_resolver
        return settings

    async def async_run(self, **kwargs) -> Dict[str, Any]:
        """Run one upsert and return ``{success, result}`` or ``{success, error}``."""
        invocation = self._build_invocation(kwargs)
        settings = self._build_settings()

        try:
            outcome = await execute_upsert(invocation, settings)
        except ConfigurationError as e:
            logger.error(f"Upsert node {invocation.node.id} is misconfigured: {e}")
            raise NodeExecutionError(f"Upsert configuration error: {e}") from e

        return outcome.to_dict()
