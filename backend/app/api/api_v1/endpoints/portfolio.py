"""
IRDesk Platform - 投资组合API端点
基于CRM账户与交易记录的持仓、业绩、资产配置与交易明细
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import data_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.logging import get_logger
from backend.app.models.user import User
from backend.app.services.portfolio_service import portfolio_service

logger = get_logger(__name__)

router = APIRouter()

PERIOD_PATTERN = r"^(1D|1W|1M|3M|6M|1Y|ALL)$"


@router.get("/{account_id}", summary="投资组合总览")
async def get_portfolio(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await portfolio_service.get_portfolio_data(account_id, db)
    return data_response(data, "포트폴리오 데이터를 성공적으로 조회했습니다.")


@router.get("/{account_id}/performance", summary="投资组合业绩", description="不指定期间时返回全部期间")
async def get_performance(
    account_id: int,
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN, description="期间 1D/1W/1M/3M/6M/1Y/ALL"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await portfolio_service.get_performance(account_id, db, period=period)
    return data_response(data, "포트폴리오 성과 데이터를 성공적으로 조회했습니다.")


@router.get("/{account_id}/assets", summary="持仓资产")
async def get_assets(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await portfolio_service.get_assets(account_id, db)
    return data_response(data, "포트폴리오 자산 데이터를 성공적으로 조회했습니다.")


@router.get("/{account_id}/allocation", summary="资产配置")
async def get_allocation(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await portfolio_service.get_allocation(account_id, db)
    return data_response(data, "포트폴리오 할당 데이터를 성공적으로 조회했습니다.")


@router.get("/{account_id}/transactions", summary="交易明细")
async def get_transactions(
    account_id: int,
    limit: int = Query(10, ge=1, le=100, description="条数"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await portfolio_service.get_transactions(account_id, db, limit=limit)
    return data_response(data, "포트폴리오 거래 내역을 성공적으로 조회했습니다.")
