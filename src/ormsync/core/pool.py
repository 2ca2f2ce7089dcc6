"""
Bounded, validating connection pool.

Manifesto:
    Schema planning, apply-now execution and the migration runner all
    need short-lived connections to the same target. The pool keeps a
    bounded set of DB-API connections, validates each one before handing
    it out, and retires connections that are too old or idle too long.

    - **Bounded:** never more than ``max_size`` open connections
    - **Blocking with timeout:** acquisition waits up to ``acquire_timeout``
    - **Self-healing:** an invalid idle connection is replaced once,
      transparently
    - **Passed by reference:** components take a ``ConnectionPool``
      argument; ``initialize``/``get_pool``/``shutdown`` manage an
      optional process-wide instance

Architecture:
    ::

        acquire() ──► idle deque ──(validate: SELECT 1)──► PooledConnection
            │            │ empty                              │ close()
            │            ▼                                     ▼
            │      open < max_size ? open new : wait      release()
            │                                               │
            └── deadline passed ──► PoolExhaustedError       ├─ rollback ok, young ─► idle
                                                             └─ expired/broken ─► retire + backfill(min_idle)

Examples:
    >>> from ormsync.core.config import DatabaseConfig, PoolConfig
    >>> pool = ConnectionPool(DatabaseConfig.sqlite(":memory:"), PoolConfig(max_size=2, min_idle=0))
    >>> with pool.acquire() as conn:
    ...     cur = conn.cursor()
    ...     _ = cur.execute("SELECT 1")
    >>> pool.stats().idle
    1
    >>> pool.close()

Guardrails:
    ❌ DON'T: Keep a PooledConnection after close(); it raises PoolClosedError
    ✅ DO: Use ``with pool.acquire() as conn:`` so it is always returned

Tags:
    connection-pool, threading, validation, lifecycle, ormsync

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ormsync.core.config import DatabaseConfig, PoolConfig
from ormsync.core.connection import Connector, DBAPIConnection, create_connector
from ormsync.core.dialect import Dialect, get_dialect
from ormsync.core.errors import (
    ConnectionInvalidError,
    DatabaseConnectionError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
)
from ormsync.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Slot:
    raw: DBAPIConnection
    created_at: float
    last_used: float


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time pool counters."""

    open: int
    idle: int
    in_use: int
    max_size: int
    closed: bool


class PooledConnection:
    """A checked-out connection. ``close()`` returns it to the pool."""

    def __init__(self, pool: ConnectionPool, slot: _Slot):
        self._pool = pool
        self._slot: _Slot | None = slot

    @property
    def raw(self) -> DBAPIConnection:
        if self._slot is None:
            raise PoolClosedError("Connection has been returned to the pool")
        return self._slot.raw

    @property
    def closed(self) -> bool:
        return self._slot is None

    @property
    def dialect(self) -> Dialect:
        return self._pool.dialect

    def cursor(self) -> Any:
        return self.raw.cursor()

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        """Return the connection to the pool; repeated calls are no-ops."""
        slot, self._slot = self._slot, None
        if slot is not None:
            self._pool._release(slot)

    def __enter__(self) -> PooledConnection:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._slot is None else "open"
        return f"PooledConnection({self._pool.dialect.name}, {state})"


class ConnectionPool:
    """Bounded pool of DB-API connections for one ``DatabaseConfig``.

    Args:
        config: Connection target; fixed for the pool's lifetime.
        pool_config: Sizing and aging; defaults to ``PoolConfig()``.
        connector: Zero-argument callable opening a connection. Defaults to
            :func:`~ormsync.core.connection.create_connector`.
        dialect: Overrides the dialect derived from ``config``.
        clock: Monotonic clock used for connection aging.

    Raises:
        DatabaseConnectionError: If the ``min_idle`` connections cannot be opened.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        pool_config: PoolConfig | None = None,
        *,
        connector: Connector | None = None,
        dialect: Dialect | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.pool_config = pool_config or PoolConfig()
        self.dialect = dialect or get_dialect(config.dialect)
        self._connect = connector or create_connector(config)
        self._clock = clock
        self._cond = threading.Condition()
        self._idle: deque[_Slot] = deque()
        self._open = 0
        self._closed = False

        try:
            for _ in range(self.pool_config.min_idle):
                self._idle.append(self._open_slot())
        except DatabaseConnectionError:
            self.close()
            raise

        logger.info(
            "pool.initialized",
            dialect=self.dialect.name,
            target=config.redacted(),
            max_size=self.pool_config.max_size,
            min_idle=self.pool_config.min_idle,
        )

    # ── Public API ───────────────────────────────────────────────

    def acquire(self, timeout: float | None = None) -> PooledConnection:
        """Check out a validated connection.

        Blocks up to ``timeout`` (default ``acquire_timeout``) waiting for an
        idle connection or a free slot under ``max_size``.

        Only reused idle connections are pinged before being handed out; a
        connection opened for this call is returned without a round trip.

        Raises:
            PoolExhaustedError: No connection became available in time.
            PoolClosedError: The pool has been closed.
            ConnectionInvalidError: A stale connection could not be replaced.
        """
        timeout = self.pool_config.acquire_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        slot: _Slot | None = None

        with self._cond:
            while True:
                if self._closed:
                    raise PoolClosedError("Connection pool is closed")
                if self._idle:
                    slot = self._idle.popleft()
                    break
                if self._open < self.pool_config.max_size:
                    self._open += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning("pool.exhausted", timeout=timeout, max_size=self.pool_config.max_size)
                    raise PoolExhaustedError(timeout=timeout, max_size=self.pool_config.max_size)
                self._cond.wait(remaining)

        if slot is None:
            slot = self._open_slot(reserved=True)
        else:
            reason = self._expired(slot) or (None if self._is_valid(slot) else "invalid")
            if reason is not None:
                logger.info("pool.connection_replaced", reason=reason)
                self._close_raw(slot.raw)
                slot = self._open_slot(reserved=True, replacing=True)

        slot.last_used = self._clock()
        return PooledConnection(self, slot)

    def close(self) -> None:
        """Close idle connections and refuse new acquisitions.

        Connections still checked out are closed when they are returned.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            slots = list(self._idle)
            self._idle.clear()
            self._open -= len(slots)
            self._cond.notify_all()
        for slot in slots:
            self._close_raw(slot.raw)
        logger.info("pool.closed", dialect=self.dialect.name, in_use=self._open)

    def stats(self) -> PoolStats:
        with self._cond:
            return PoolStats(
                open=self._open,
                idle=len(self._idle),
                in_use=self._open - len(self._idle),
                max_size=self.pool_config.max_size,
                closed=self._closed,
            )

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> ConnectionPool:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Internals ────────────────────────────────────────────────

    def _open_slot(self, *, reserved: bool = False, replacing: bool = False) -> _Slot:
        """Open a connection. With ``reserved`` the caller already counted it."""
        if not reserved:
            with self._cond:
                self._open += 1
        try:
            raw = self._connect()
        except Exception as exc:
            with self._cond:
                self._open -= 1
                self._cond.notify()
            if replacing:
                raise ConnectionInvalidError(
                    "Pooled connection was invalid and could not be replaced", cause=exc
                ) from exc
            if isinstance(exc, DatabaseConnectionError):
                raise
            raise DatabaseConnectionError(f"Could not open connection: {exc}", cause=exc) from exc
        now = self._clock()
        return _Slot(raw=raw, created_at=now, last_used=now)

    def _release(self, slot: _Slot) -> None:
        reason = None if self._reset(slot) else "reset_failed"
        reason = reason or self._expired(slot)

        with self._cond:
            retire = self._closed or reason is not None
            if retire:
                self._open -= 1
            else:
                slot.last_used = self._clock()
                self._idle.append(slot)
            self._cond.notify()

        if retire:
            self._close_raw(slot.raw)
            if reason is not None:
                logger.info("pool.connection_retired", reason=reason)
                self._backfill()

    def _expired(self, slot: _Slot) -> str | None:
        now = self._clock()
        if now - slot.created_at > self.pool_config.max_lifetime:
            return "max_lifetime"
        if now - slot.last_used > self.pool_config.idle_timeout:
            return "idle_timeout"
        return None

    def _is_valid(self, slot: _Slot) -> bool:
        try:
            cur = slot.raw.cursor()
            try:
                cur.execute(self.dialect.ping_query())
                cur.fetchall()
            finally:
                cur.close()
        except Exception as exc:
            logger.debug("pool.validation_failed", error=str(exc))
            return False
        return True

    def _reset(self, slot: _Slot) -> bool:
        try:
            slot.raw.rollback()
        except Exception as exc:
            logger.debug("pool.reset_failed", error=str(exc))
            return False
        return True

    def _backfill(self) -> None:
        """Best-effort top-up to ``min_idle`` open connections."""
        while True:
            with self._cond:
                if self._closed or self._open >= self.pool_config.min_idle:
                    return
                self._open += 1
            try:
                slot = self._open_slot(reserved=True)
            except DatabaseConnectionError as exc:
                logger.warning("pool.backfill_failed", error=str(exc))
                return
            with self._cond:
                if not self._closed:
                    self._idle.append(slot)
                    self._cond.notify()
                    continue
                self._open -= 1
            self._close_raw(slot.raw)
            return

    @staticmethod
    def _close_raw(raw: DBAPIConnection) -> None:
        try:
            raw.close()
        except Exception as exc:
            logger.debug("pool.close_failed", error=str(exc))


# =============================================================================
# PROCESS-WIDE POOL
# =============================================================================

_POOL: ConnectionPool | None = None
_POOL_LOCK = threading.Lock()


def initialize(
    config: DatabaseConfig,
    pool_config: PoolConfig | None = None,
    **kwargs: Any,
) -> ConnectionPool:
    """Create the process-wide pool, closing any previous one first."""
    global _POOL
    with _POOL_LOCK:
        if _POOL is not None:
            logger.info("pool.reinitializing")
            _POOL.close()
            _POOL = None
        _POOL = ConnectionPool(config, pool_config, **kwargs)
        return _POOL


def get_pool() -> ConnectionPool:
    """Return the process-wide pool created by :func:`initialize`."""
    if _POOL is None:
        raise PoolError("Connection pool has not been initialized")
    return _POOL


def shutdown() -> None:
    """Close the process-wide pool, if any."""
    global _POOL
    with _POOL_LOCK:
        if _POOL is not None:
            _POOL.close()
            _POOL = None


__all__ = [
    "ConnectionPool",
    "PooledConnection",
    "PoolStats",
    "initialize",
    "get_pool",
    "shutdown",
]
