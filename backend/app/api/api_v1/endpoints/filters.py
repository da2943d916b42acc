"""
IRDesk Platform - 筛选条件与汇总指标API端点
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import success_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.models.user import User
from backend.app.services.investor_service import investor_service

router = APIRouter()
metrics_router = APIRouter()


@router.get("/periods", summary="可用期间", description="存在快照数据的年度/季度, 最新在前")
async def get_periods(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    data = await investor_service.get_available_periods(db)
    return success_response(data, "Available periods retrieved successfully")


@router.get("/dictionaries", summary="筛选字典")
async def get_dictionaries(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    data = await investor_service.get_filter_dictionaries(db)
    return success_response(data, "Filter dictionaries retrieved successfully")


@metrics_router.get("/summary", summary="期间汇总指标")
async def get_summary(
    year: int = Query(..., ge=2000, le=2100, description="年度"),
    quarter: int = Query(..., ge=1, le=4, description="季度"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await investor_service.get_summary_metrics(year, quarter, db)
    return success_response(data, "Summary metrics retrieved successfully")
