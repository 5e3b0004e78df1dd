"""PostgreSQL helpers for the definition store: pooled connections and query logging."""

from __future__ import annotations

import contextvars
import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Iterable

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool


_POOL: SimpleConnectionPool | None = None
_logger = logging.getLogger("screenkit.db")
_query_logger = logging.getLogger("screenkit.db.query")
_QUERY_LOG: contextvars.ContextVar[list | None] = contextvars.ContextVar("screenkit_db_query_log", default=None)
_SLOW_MS = float(os.getenv("SCREENKIT_QUERY_SLOW_MS", "200"))
_LOG_ALL = os.getenv("SCREENKIT_QUERY_LOG", "").strip() == "1"


def get_db_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required when USE_DB=1")
    return url


def _redact_params(params: Iterable[Any] | None) -> list[Any] | None:
    if params is None:
        return None
    redacted: list[Any] = []
    for val in params:
        if isinstance(val, (bytes, bytearray)):
            redacted.append(f"<bytes:{len(val)}>")
        elif isinstance(val, str) and len(val) > 80:
            # definition bodies are large JSON strings
            redacted.append(f"<json:{len(val)}>")
        else:
            redacted.append(val)
    return redacted


def _log_query(query_name: str | None, params: Iterable[Any] | None, elapsed_ms: float, rowcount: int | None) -> None:
    log = get_query_log()
    log.append(query_name or "unnamed")
    _QUERY_LOG.set(log)
    if not _LOG_ALL and elapsed_ms < _SLOW_MS:
        return
    message = {
        "query": query_name or "unnamed",
        "ms": round(elapsed_ms, 2),
        "rowcount": rowcount,
        "params": _redact_params(params),
    }
    if elapsed_ms >= _SLOW_MS:
        _query_logger.warning("db_slow_query=%s", message)
    else:
        _query_logger.info("db_query=%s", message)


def get_query_log() -> list:
    log = _QUERY_LOG.get()
    return log if isinstance(log, list) else []


def reset_query_log() -> None:
    _QUERY_LOG.set([])


def init_pool(minconn: int | None = None, maxconn: int | None = None) -> None:
    global _POOL
    if _POOL is None:
        if minconn is None:
            minconn = int(os.getenv("SCREENKIT_DB_POOL_MIN", "1"))
        if maxconn is None:
            maxconn = int(os.getenv("SCREENKIT_DB_POOL_MAX", "10"))
        _POOL = SimpleConnectionPool(minconn, maxconn, dsn=get_db_url())
        _logger.info("db pool ready (min=%s max=%s)", minconn, maxconn)


def _get_pool() -> SimpleConnectionPool:
    if _POOL is None:
        init_pool()
    return _POOL


@contextmanager
def get_conn():
    pool = _get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def fetch_one(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> dict | None:
    start = time.perf_counter()
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(sql, params or [])
        row = cur.fetchone()
        rowcount = cur.rowcount
    _log_query(query_name, params, (time.perf_counter() - start) * 1000, rowcount)
    return dict(row) if row else None


def fetch_all(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> list[dict]:
    start = time.perf_counter()
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute(sql, params or [])
        rows = [dict(r) for r in cur.fetchall()]
        rowcount = cur.rowcount
    _log_query(query_name, params, (time.perf_counter() - start) * 1000, rowcount)
    return rows


def execute(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> int:
    start = time.perf_counter()
    with conn.cursor() as cur:
        cur.execute(sql, params or [])
        rowcount = cur.rowcount
    _log_query(query_name, params, (time.perf_counter() - start) * 1000, rowcount)
    return rowcount
