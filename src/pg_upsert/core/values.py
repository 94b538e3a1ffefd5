"""Tagged column values for the upsert write payload.

The engine hands the adapter an untyped ``data`` input. Every value is
classified into a ``ColumnValue`` before it reaches the driver so that
serialization is explicit:

    string    -> str (UUID is rendered as its string form)
    number    -> int / float / Decimal (bool is NOT a number here)
    boolean   -> bool
    null      -> None
    json      -> dict / list / tuple, sent as JSON text
    temporal  -> date / datetime / time, passed through to the driver
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence
from uuid import UUID

from .exceptions import PayloadError


class ValueKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    JSON = "json"
    TEMPORAL = "temporal"


@dataclass(frozen=True)
class ColumnValue:
    """A payload value paired with its kind."""

    kind: ValueKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> "ColumnValue":
        """Classify a raw value.

        Raises:
            PayloadError: If the value has no supported kind.
        """
        if value is None:
            return cls(ValueKind.NULL, None)
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, (int, float, Decimal)):
            return cls(ValueKind.NUMBER, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        if isinstance(value, UUID):
            return cls(ValueKind.STRING, str(value))
        if isinstance(value, (datetime, date, time)):
            return cls(ValueKind.TEMPORAL, value)
        if isinstance(value, (dict, list, tuple)):
            return cls(ValueKind.JSON, value)
        raise PayloadError(
            f"Unsupported value type {type(value).__name__}: {value!r}"
        )

    def to_parameter(self) -> Any:
        """Render the value as a driver query argument."""
        if self.kind is ValueKind.JSON:
            return json.dumps(self.value, default=str)
        return self.value


TypedRow = Dict[str, ColumnValue]


class PayloadProcessor:
    """Turns the raw ``data`` input into a list of typed rows.

    Accepts one row (a mapping) or a non-empty sequence of rows. Column
    names are checked later by the query builder; here only shape and value
    kinds are validated.

    Example:
        >>> rows = PayloadProcessor().process({"email": "a@x.com", "age": 3})
        >>> rows[0]["age"].kind
        <ValueKind.NUMBER: 'number'>
    """

    def process(self, payload: Any) -> List[TypedRow]:
        if isinstance(payload, Mapping):
            return [self.process_row(payload, 0)]

        if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
            if not payload:
                raise PayloadError("Upsert payload is an empty list of rows")
            return [self.process_row(row, i) for i, row in enumerate(payload)]

        raise PayloadError(
            "Upsert payload must be a mapping of column to value or a list of them, "
            f"got {type(payload).__name__}"
        )

    def process_row(self, row: Any, index: int = 0) -> TypedRow:
        if not isinstance(row, Mapping):
            raise PayloadError(
                f"Row {index} must be a mapping of column to value, "
                f"got {type(row).__name__}"
            )
        if not row:
            raise PayloadError(f"Row {index} has no columns")

        typed: TypedRow = {}
        for column, value in row.items():
            if not isinstance(column, str):
                raise PayloadError(
                    f"Row {index}: column name {column!r} is not a string"
                )
            try:
                typed[column] = ColumnValue.of(value)
            except PayloadError as e:
                raise PayloadError(f"Row {index}, column '{column}': {e}") from e
        return typed
