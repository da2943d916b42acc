"""
IRDesk Platform - 自选股与价格提醒API端点
"""

from typing import Literal
from fastapi import APIRouter, Depends, Path, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.models.user import User
from backend.app.services.favorites_service import favorites_service

router = APIRouter()
alerts_router = APIRouter()

SymbolPath = Path(..., min_length=1, max_length=10, description="股票代码")


class PriceAlertCreateRequest(CamelModel):
    """价格提醒请求模型"""
    symbol: str = Field(..., min_length=1, max_length=10, description="股票代码")
    target_price: str = Field(..., pattern=r"^\d+(\.\d{1,2})?$", description="目标价格")
    condition: Literal["above", "below"] = Field(..., description="触发条件")


@router.get("", summary="自选股列表")
async def list_favorites(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await favorites_service.list_favorites(current_user, db)


@router.post("/{symbol}", summary="添加自选股")
async def add_favorite(
    symbol: str = SymbolPath,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorites_service.add_favorite(current_user, symbol.upper(), db)


@router.delete("/{symbol}", summary="删除自选股")
async def remove_favorite(
    symbol: str = SymbolPath,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorites_service.remove_favorite(current_user, symbol.upper(), db)


@router.get("/{symbol}/check", summary="是否已添加自选")
async def check_favorite(
    symbol: str = SymbolPath,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    symbol = symbol.upper()
    return {"symbol": symbol, "isFavorite": await favorites_service.is_favorite(current_user, symbol, db)}


@alerts_router.get("", summary="有效价格提醒")
async def list_alerts(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await favorites_service.list_active_alerts(current_user, db)


@alerts_router.post("", status_code=status.HTTP_201_CREATED, summary="创建价格提醒")
async def create_alert(
    request: PriceAlertCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorites_service.create_alert(
        current_user,
        request.symbol.upper(),
        request.target_price,
        request.condition,
        db,
    )
