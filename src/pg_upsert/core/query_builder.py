"""Builds the single conflict-resolving INSERT statement.

    INSERT INTO "users" ("email", "name") VALUES ($1, $2)
    ON CONFLICT ("email") DO UPDATE SET
        "email" = EXCLUDED."email", "name" = EXCLUDED."name"
    RETURNING *

Every inserted column is merged on conflict (last write wins per column).
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Union

from .exceptions import InvalidIdentifierError, PayloadError
from .values import TypedRow

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]{0,62}$")

CONSTRAINT_PREFIX = "constraint:"


def quote_identifier(name: str, kind: str = "identifier") -> str:
    """Validate and double-quote a single SQL identifier."""
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(str(name), kind)
    return f'"{name}"'


def quote_table(table: str) -> str:
    """Quote a table name, allowing one schema qualifier (``schema.table``)."""
    if not isinstance(table, str) or not table:
        raise InvalidIdentifierError(str(table), "table name")
    parts = table.split(".")
    if len(parts) > 2:
        raise InvalidIdentifierError(table, "table name")
    return ".".join(quote_identifier(part, "table name") for part in parts)


def conflict_clause(on_conflict: Union[str, Sequence[str]]) -> str:
    """Render the conflict target.

    Accepts a column name, a comma-separated list of columns, a list of
    columns, or ``constraint:<name>`` for ``ON CONFLICT ON CONSTRAINT``.
    """
    if isinstance(on_conflict, str):
        target = on_conflict.strip()
        if target.lower().startswith(CONSTRAINT_PREFIX):
            name = target[len(CONSTRAINT_PREFIX) :].strip()
            quoted = quote_identifier(name, "constraint name")
            return f"ON CONFLICT ON CONSTRAINT {quoted}"
        columns = [c.strip() for c in target.split(",")]
    else:
        columns = [c.strip() if isinstance(c, str) else c for c in on_conflict]

    if not columns or any(not c for c in columns):
        raise PayloadError(f"Invalid conflict target: {on_conflict!r}")

    quoted = ", ".join(quote_identifier(c, "conflict column") for c in columns)
    return f"ON CONFLICT ({quoted})"


@dataclass
class UpsertStatement:
    """SQL text plus its positional arguments."""

    sql: str
    args: List[Any] = field(default_factory=list)


def build_upsert(
    table: str,
    rows: Sequence[TypedRow],
    on_conflict: Union[str, Sequence[str]],
) -> UpsertStatement:
    """Build ``INSERT ... ON CONFLICT ... DO UPDATE ... RETURNING *``.

    Columns are the union of all rows' keys in first-seen order. A row
    missing a column gets ``DEFAULT`` in that slot.

    Raises:
        PayloadError: If there are no rows or the conflict target is invalid.
        InvalidIdentifierError: If any table/column/constraint name is unsafe.
    """
    if not rows:
        raise PayloadError("Nothing to upsert: payload has no rows")

    columns: List[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)

    quoted_columns = [quote_identifier(c, "column name") for c in columns]

    args: List[Any] = []
    value_groups = []
    for row in rows:
        slots = []
        for column in columns:
            if column in row:
                args.append(row[column].to_parameter())
                slots.append(f"${len(args)}")
            else:
                slots.append("DEFAULT")
        value_groups.append(f"({', '.join(slots)})")

    merge = ", ".join(f"{q} = EXCLUDED.{q}" for q in quoted_columns)

    sql = (
        f"INSERT INTO {quote_table(table)} ({', '.join(quoted_columns)}) "
        f"VALUES {', '.join(value_groups)} "
        f"{conflict_clause(on_conflict)} DO UPDATE SET {merge} "
        "RETURNING *"
    )
    return UpsertStatement(sql=sql, args=args)
