"""
Health endpoint.

  GET /api/v1/health  -- Liveness plus database and agent status
"""

import asyncio
import logging
import sqlite3
import time
from pathlib import Path

from fastapi import APIRouter, Request

from ...memory.schema import get_connection
from ..models.responses import AgentInfo, HealthResponse
from .chat import active_run_count

logger = logging.getLogger(__name__)
router = APIRouter()


def _database_ok(db_path: Path) -> bool:
    try:
        conn = get_connection(db_path)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.warning(f"[Health] Database check failed: {e}")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Returns 200 while the process is alive; status degrades if the DB is unreachable."""
    registry = request.app.state.registry
    db_path = getattr(request.app.state.store, "db_path", None)
    database = True if db_path is None else await asyncio.to_thread(_database_ok, db_path)
    return HealthResponse(
        status="healthy" if database else "degraded",
        database=database,
        agents=[AgentInfo(**info) for info in registry.list_info()],
        active_runs=active_run_count(),
        uptime_seconds=round(time.time() - request.app.state.start_time, 1),
    )
