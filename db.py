import logging
from contextlib import contextmanager

import psycopg2.extras
from psycopg2.extras import RealDictCursor
from psycopg2.pool import SimpleConnectionPool

from settings import settings

logger = logging.getLogger("dourou.db")

_pool: SimpleConnectionPool | None = None


def init_pool():
    """
    Open the PostgreSQL connection pool.
    Lazy: only the postgres store ever calls this.
    """
    global _pool
    if _pool is not None:
        return
    if not (settings.DATABASE_URL or "").strip():
        raise RuntimeError("DATABASE_URL is not set.")

    psycopg2.extras.register_uuid()
    _pool = SimpleConnectionPool(
        minconn=1,
        maxconn=settings.DB_POOL_MAX,
        dsn=settings.DATABASE_URL,
        connect_timeout=5,
        application_name="dourou_api",
    )
    logger.info("db_pool_opened maxconn=%s", settings.DB_POOL_MAX)


def close_pool():
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    One connection, one transaction: commit on clean exit, rollback on any error.

    A session holds a row lock on its tontine for the whole block, so both the
    statement and the wait for that lock are bounded.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()
    try:
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = %s;", (f"{settings.DB_STATEMENT_TIMEOUT_MS}ms",))
            cur.execute("SET lock_timeout = %s;", (f"{settings.DB_LOCK_TIMEOUT_MS}ms",))
            cur.execute("SET idle_in_transaction_session_timeout = '5000ms';")
            cur.execute("SET search_path = dourou, public;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)


def dict_cursor(conn):
    return conn.cursor(cursor_factory=RealDictCursor)
