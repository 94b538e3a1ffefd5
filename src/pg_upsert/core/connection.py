"""Per-invocation connection handle.

A handle is created for exactly one adapter call and walks a linear state
machine: IDLE -> CONNECTED -> CLOSED. ``close()`` may be called any number
of times; the driver connection is closed at most once, and only if it was
ever opened.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import asyncpg

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., Awaitable[Any]]


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    CLOSED = "closed"


class ConnectionHandle:
    """Exclusive, short-lived connection owned by one upsert call.

    Args:
        dsn: PostgreSQL connection string (the resolved ``pg_string`` secret).
        factory: Coroutine function opening a connection, ``asyncpg.connect``
            by default. Anything with async ``fetch()`` and ``close()`` works.
        timeout: Optional connect timeout forwarded to the factory.
    """

    def __init__(
        self,
        dsn: str,
        factory: Optional[ConnectionFactory] = None,
        timeout: Optional[float] = None,
    ):
        self._dsn = dsn
        self._factory = factory or asyncpg.connect
        self._timeout = timeout
        self._connection: Any = None
        self.state = ConnectionState.IDLE

    @property
    def connection(self) -> Any:
        return self._connection

    async def open(self) -> Any:
        if self.state is not ConnectionState.IDLE:
            raise RuntimeError(
                f"Cannot open a connection handle in state '{self.state.value}'"
            )

        if self._timeout is not None:
            self._connection = await self._factory(self._dsn, timeout=self._timeout)
        else:
            self._connection = await self._factory(self._dsn)
        self.state = ConnectionState.CONNECTED
        logger.debug("Upsert connection opened")
        return self._connection

    async def fetch(self, sql: str, *args: Any) -> Any:
        if self.state is not ConnectionState.CONNECTED:
            raise RuntimeError(
                f"Cannot execute on a connection handle in state '{self.state.value}'"
            )
        return await self._connection.fetch(sql, *args)

    async def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return

        connection, self._connection = self._connection, None
        self.state = ConnectionState.CLOSED
        if connection is not None:
            await connection.close()
            logger.debug("Upsert connection closed")
