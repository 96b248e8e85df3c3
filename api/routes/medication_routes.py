"""
药品目录API路由（只读）
"""
from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from api.utils.api_response import APIResponse
from core.catalog.medication_catalog import SQLiteMedicationCatalog
from core.database.connection import db_manager

router = APIRouter(prefix="/medication", tags=["药品目录"])


def get_local_catalog() -> SQLiteMedicationCatalog:
    """本服务维护的目录表"""
    return SQLiteMedicationCatalog(db_manager)


@router.get("")
async def list_medications(catalog: SQLiteMedicationCatalog = Depends(get_local_catalog)):
    """获取药品列表"""
    entries = await run_in_threadpool(catalog.list_medications)
    return APIResponse.success(data=[entry.to_dict() for entry in entries])


@router.get("/{medication_id}")
async def get_medication(
    medication_id: str,
    catalog: SQLiteMedicationCatalog = Depends(get_local_catalog)
):
    """获取药品详情"""
    entry = await run_in_threadpool(catalog.resolve, medication_id)
    if not entry:
        return APIResponse.not_found(f"药品 {medication_id} ")
    return APIResponse.success(data=entry.to_dict())
