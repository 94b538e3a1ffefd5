"""Unit tests for PostgresUpsertNode.

Tier 1 (unit tests): Mocking is allowed.
Tests verify that the node correctly:
- Extends AsyncNode and implements async_run()
- Reads secrets, project and spell from inputs or the workflow context
- Returns {success, result} / {success, error} from the adapter outcome
- Raises NodeExecutionError for configuration problems
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from kailash.nodes.base_async import AsyncNode
from kailash.sdk_exceptions import NodeExecutionError

from pg_upsert import EnvSecretsResolver, InMemoryTelemetrySink, PostgresUpsertNode
from tests.fixtures.fake_pg import FakeUpsertConnection, make_factory
from tests.fixtures.invocations import TEST_PG_STRING

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_context(secrets=None, project_id=None, spell=None, telemetry_sink=None):
    """Build a workflow context dict."""
    ctx = {}
    if secrets is not None:
        ctx["secrets"] = secrets
    if project_id is not None:
        ctx["project_id"] = project_id
    if spell is not None:
        ctx["current_spell"] = spell
    if telemetry_sink is not None:
        ctx["telemetry_sink"] = telemetry_sink
    return ctx


def _apply_context(node, context):
    """Patch get_workflow_context and set_workflow_context on a node."""
    store = dict(context)

    def getter(key, default=None):
        return store.get(key, default)

    def setter(key, value):
        store[key] = value

    node.get_workflow_context = getter
    node.set_workflow_context = setter
    return store


def _make_node(connection=None, sink=None, **kwargs):
    connection = connection if connection is not None else FakeUpsertConnection()
    factory = make_factory(connection)
    node = PostgresUpsertNode(
        node_id=kwargs.pop("node_id", "upsert_users"),
        table=kwargs.pop("table", "users"),
        on_conflict=kwargs.pop("on_conflict", "email"),
        telemetry_sink=sink,
        connection_factory=factory,
        **kwargs,
    )
    return node, factory


# ---------------------------------------------------------------------------
# Tests: Base class verification
# ---------------------------------------------------------------------------


class TestAsyncBaseClass:
    def test_node_is_async(self):
        assert issubclass(PostgresUpsertNode, AsyncNode)

    def test_node_has_async_run(self):
        node = PostgresUpsertNode(node_id="test")
        assert hasattr(node, "async_run")

    def test_parameters(self):
        params = PostgresUpsertNode(node_id="test").get_parameters()
        assert set(params) == {
            "table",
            "on_conflict",
            "data",
            "project_id",
            "spell",
            "secrets",
        }
        assert params["data"].required is True
        assert params["table"].required is False


# ---------------------------------------------------------------------------
# Tests: PostgresUpsertNode.async_run
# ---------------------------------------------------------------------------


class TestPostgresUpsertNode:
    @pytest.mark.asyncio
    async def test_upsert_with_context_secrets(self):
        sink = InMemoryTelemetrySink()
        node, factory = _make_node(sink=sink)
        _apply_context(
            node,
            _build_context(
                secrets={"pg_string": TEST_PG_STRING},
                project_id="proj",
                spell="spell",
            ),
        )

        result = await node.async_run(data={"email": "a@x.com", "name": "Ann"})

        assert result == {
            "success": True,
            "result": [{"email": "a@x.com", "name": "Ann"}],
        }
        factory.assert_awaited_once_with(TEST_PG_STRING)

        record = sink.records[0]
        assert record.project_id == "proj"
        assert record.spell == "spell"
        assert record.node_id == node._node_identifier()

    @pytest.mark.asyncio
    async def test_inputs_override_context(self):
        sink = InMemoryTelemetrySink()
        node, factory = _make_node(sink=sink)
        _apply_context(
            node,
            _build_context(secrets={"pg_string": "postgresql://ctx"}, project_id="a"),
        )

        await node.async_run(
            data={"email": "a@x.com"},
            secrets={"pg_string": "postgresql://input"},
            project_id="b",
            spell="s",
        )

        factory.assert_awaited_once_with("postgresql://input")
        assert sink.records[0].project_id == "b"

    @pytest.mark.asyncio
    async def test_table_and_conflict_from_inputs(self):
        connection = FakeUpsertConnection()
        node, _ = _make_node(connection=connection, sink=InMemoryTelemetrySink())
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        await node.async_run(
            table="accounts", on_conflict="name", data={"name": "acme"}
        )

        sql = connection.queries[0][0]
        assert sql.startswith('INSERT INTO "accounts"')
        assert 'ON CONFLICT ("name")' in sql

    @pytest.mark.asyncio
    async def test_repeat_upsert_merges(self):
        connection = FakeUpsertConnection()
        node, _ = _make_node(connection=connection, sink=InMemoryTelemetrySink())
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        await node.async_run(data={"email": "a@x.com", "name": "Ann"})
        result = await node.async_run(data={"email": "a@x.com", "name": "Annie"})

        assert result["result"] == [{"email": "a@x.com", "name": "Annie"}]

    @pytest.mark.asyncio
    async def test_telemetry_sink_from_context(self):
        sink = InMemoryTelemetrySink()
        node, _ = _make_node()
        _apply_context(
            node,
            _build_context(
                secrets={"pg_string": TEST_PG_STRING}, telemetry_sink=sink
            ),
        )

        await node.async_run(data={"email": "a@x.com"})

        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_empty_node_sink_is_still_used(self):
        """An empty in-memory sink is falsy but must not be replaced."""
        node_sink = InMemoryTelemetrySink()
        context_sink = InMemoryTelemetrySink()
        node, _ = _make_node(sink=node_sink)
        _apply_context(
            node,
            _build_context(
                secrets={"pg_string": TEST_PG_STRING}, telemetry_sink=context_sink
            ),
        )

        await node.async_run(data={"email": "a@x.com"})

        assert len(node_sink) == 1
        assert len(context_sink) == 0

    @pytest.mark.asyncio
    async def test_query_failure_returns_error(self):
        connection = FakeUpsertConnection(fail_with=RuntimeError("relation missing"))
        node, _ = _make_node(connection=connection, sink=InMemoryTelemetrySink())
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        result = await node.async_run(data={"email": "a@x.com"})

        assert result == {"success": False, "error": "relation missing"}
        assert connection.close_calls == 1

    @pytest.mark.asyncio
    async def test_missing_secrets_raises(self):
        node, factory = _make_node(sink=InMemoryTelemetrySink())
        _apply_context(node, {})

        with pytest.raises(NodeExecutionError, match="No secrets found"):
            await node.async_run(data={"email": "a@x.com"})

        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_pg_string_raises(self):
        node, _ = _make_node(sink=InMemoryTelemetrySink())
        _apply_context(node, _build_context(secrets={"other": "x"}))

        with pytest.raises(NodeExecutionError, match="pg_string"):
            await node.async_run(data={"email": "a@x.com"})

    @pytest.mark.asyncio
    async def test_missing_table_raises(self):
        node = PostgresUpsertNode(node_id="no_table", on_conflict="email")
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        with pytest.raises(NodeExecutionError, match="requires a 'table'"):
            await node.async_run(data={"email": "a@x.com"})

    @pytest.mark.asyncio
    async def test_missing_on_conflict_raises(self):
        node = PostgresUpsertNode(node_id="no_conflict", table="users")
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        with pytest.raises(NodeExecutionError, match="on_conflict"):
            await node.async_run(data={"email": "a@x.com"})

    @pytest.mark.asyncio
    async def test_custom_secrets_resolver(self, monkeypatch):
        monkeypatch.setenv("PG_UPSERT_PG_STRING", "postgresql://env")
        node, factory = _make_node(
            sink=InMemoryTelemetrySink(), secrets_resolver=EnvSecretsResolver()
        )
        _apply_context(node, {})

        result = await node.async_run(data={"email": "a@x.com"})

        assert result["success"] is True
        factory.assert_awaited_once_with("postgresql://env")

    @pytest.mark.asyncio
    async def test_telemetry_failure_does_not_fail_node(self):
        sink = MagicMock()
        sink.save_request = AsyncMock(side_effect=RuntimeError("sink down"))
        node, _ = _make_node(sink=sink)
        _apply_context(node, _build_context(secrets={"pg_string": TEST_PG_STRING}))

        result = await node.async_run(data={"email": "a@x.com"})

        assert result["success"] is True
