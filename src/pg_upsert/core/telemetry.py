"""Request telemetry for upsert calls.

One ``TelemetryRecord`` is emitted per call that reaches query execution,
whatever the outcome. The sink is external: this module defines the record
shape, the sink protocol and a few sinks useful in workflows and tests.

Key Components:
    - TelemetryRecord: write-only fact describing one upsert attempt
    - TelemetrySink: protocol with ``async save_request(record)``
    - InMemoryTelemetrySink: thread-safe list of records
    - LoggingTelemetrySink: one INFO log line per record
    - CallableTelemetrySink: adapts a plain ``save_request`` function

Usage:
    sink = InMemoryTelemetrySink()
    outcome = await execute_upsert(invocation, UpsertSettings(telemetry_sink=sink))
    sink.records[0].status_code  # 200
"""

import inspect
import json
import logging
import threading
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

REQUEST_TYPE = "database"
PROVIDER = "postgres"
DEFAULT_MODEL_TAG = "knex"


def to_json_text(value: Any) -> Optional[str]:
    """JSON-encode a request/response value; None stays None."""
    if value is None:
        return None
    return json.dumps(value, default=str)


@dataclass(frozen=True)
class TelemetryRecord:
    """Audit entry for one upsert attempt.

    Attributes:
        project_id: Project that owns the secrets used for the call
        request_data: JSON text of ``{"table", "updates"}``
        response_data: JSON text of the returned rows, or of the error message
        start_time: Epoch milliseconds recorded right before the query
        duration: Milliseconds elapsed since ``start_time`` (monotonic clock)
        status_code: 200 on success, 500 otherwise
        status: "OK" or "Error"
        model: Client tag, "knex" unless overridden
        parameters: Same payload as ``request_data``
        spell: Enclosing workflow identifier
        node_id: Originating node identifier
    """

    project_id: Optional[str]
    request_data: str
    response_data: Optional[str]
    start_time: int
    duration: float
    status_code: int
    status: str
    model: str
    parameters: str
    spell: Optional[str]
    node_id: Any
    type: str = REQUEST_TYPE
    provider: str = PROVIDER
    total_tokens: Optional[int] = None
    hidden: bool = False
    processed: bool = False

    @classmethod
    def for_upsert(
        cls,
        *,
        project_id: Optional[str],
        table: str,
        updates: Any,
        result: Any,
        start_time: int,
        duration: float,
        success: bool,
        spell: Optional[str],
        node_id: Any,
        model: str = DEFAULT_MODEL_TAG,
    ) -> "TelemetryRecord":
        request = to_json_text({"table": table, "updates": updates})
        return cls(
            project_id=project_id,
            request_data=request,
            response_data=to_json_text(result),
            start_time=start_time,
            duration=duration,
            status_code=200 if success else 500,
            status="OK" if success else "Error",
            model=model,
            parameters=request,
            spell=spell,
            node_id=node_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase shape expected by ``save_request`` backends."""
        return {
            "projectId": self.project_id,
            "requestData": self.request_data,
            "responseData": self.response_data,
            "startTime": self.start_time,
            "duration": self.duration,
            "statusCode": self.status_code,
            "status": self.status,
            "model": self.model,
            "parameters": self.parameters,
            "type": self.type,
            "provider": self.provider,
            "totalTokens": self.total_tokens,
            "hidden": self.hidden,
            "processed": self.processed,
            "spell": self.spell,
            "nodeId": self.node_id,
        }


@runtime_checkable
class TelemetrySink(Protocol):
    async def save_request(self, record: TelemetryRecord) -> Any: ...


class InMemoryTelemetrySink:
    """Keeps every record in a list, guarded by a lock."""

    def __init__(self) -> None:
        self._records: List[TelemetryRecord] = []
        self._lock = threading.Lock()

    async def save_request(self, record: TelemetryRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[TelemetryRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class LoggingTelemetrySink:
    """Writes each record as a single log line."""

    def __init__(
        self, logger_name: str = "pg_upsert.telemetry", level: int = logging.INFO
    ):
        self._logger = logging.getLogger(logger_name)
        self._level = level

    async def save_request(self, record: TelemetryRecord) -> None:
        self._logger.log(
            self._level,
            "upsert request project=%s node=%s status=%s duration=%.1fms",
            record.project_id,
            record.node_id,
            record.status_code,
            record.duration,
        )


class CallableTelemetrySink:
    """Wraps a ``save_request(payload)`` function, sync or async.

    The function receives ``record.to_dict()``.
    """

    def __init__(self, func: Callable[[Dict[str, Any]], Any]):
        self._func = func

    async def save_request(self, record: TelemetryRecord) -> Any:
        result = self._func(record.to_dict())
        if inspect.isawaitable(result):
            result = await result
        return result
