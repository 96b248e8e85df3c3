"""
服务健康检查
"""
import logging
import sqlite3

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from api.utils.api_response import APIResponse
from core.database.connection import DatabaseConnectionManager, db_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["健康检查"])


def get_database_manager() -> DatabaseConnectionManager:
    return db_manager


@router.get("/health")
async def health_check(db: DatabaseConnectionManager = Depends(get_database_manager)):
    """服务状态与数据库可用性"""
    try:
        stats = await run_in_threadpool(db.get_database_stats)
    except sqlite3.Error as e:
        logger.error(f"健康检查数据库不可用: {e}")
        return APIResponse.error(
            code="SERVICE_UNAVAILABLE",
            message="数据库不可用",
            status_code=503
        )

    return APIResponse.success(data={
        "server_status": "running",
        "database": stats
    })
