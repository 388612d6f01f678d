"""
Database session and connection pool settings
=============================================

Pool parameters (PostgreSQL only; SQLite is used by the test-suite):
- pool_size: persistent connections (10 suits a 4-worker uvicorn)
- max_overflow: burst connections on top of pool_size
- pool_timeout: max seconds to wait for a free connection
- pool_recycle: recycle period so idle connections are not dropped server-side
- pool_pre_ping: liveness check before handing out a connection
"""

import logging
import time
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from app.config import settings

logger = logging.getLogger("hubisck.db")

POOL_SIZE = settings.DB_POOL_SIZE
MAX_OVERFLOW = settings.DB_MAX_OVERFLOW
POOL_TIMEOUT = settings.DB_POOL_TIMEOUT
POOL_RECYCLE = settings.DB_POOL_RECYCLE  # 30 minutes

SLOW_QUERY_THRESHOLD_MS = settings.SLOW_QUERY_THRESHOLD_MS


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sync endpoints run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
    }


engine = create_engine(
    settings.database_url,
    echo=settings.DB_ECHO,
    **_engine_kwargs(settings.database_url),
)


# ---------------------------------------------------------------------------
# Slow query monitoring
# ---------------------------------------------------------------------------
@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    total_ms = (time.perf_counter() - conn.info["query_start_time"].pop()) * 1000

    if total_ms >= SLOW_QUERY_THRESHOLD_MS:
        stmt_preview = statement[:500] + "..." if len(statement) > 500 else statement
        logger.warning(
            "Slow query detected",
            extra={
                "duration_ms": round(total_ms, 2),
                "statement": stmt_preview,
                "threshold_ms": SLOW_QUERY_THRESHOLD_MS,
            },
        )


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_pool_status() -> dict:
    """Connection pool state (exposed on /health)."""
    pool = engine.pool
    status = {"pool": type(pool).__name__}
    if hasattr(pool, "checkedout"):
        status.update(
            {
                "pool_size": pool.size(),
                "checked_in": pool.checkedin(),
                "checked_out": pool.checkedout(),
                "overflow": pool.overflow(),
            }
        )
    return status
