"""
IRDesk Platform - 投资者API端点
分组表格、Top N、详情、变更历史与快照编辑
"""

from datetime import datetime
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, reject_null, success_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.logging import get_logger
from backend.app.models.investor import InvestorType, Orientation, StyleTag, Turnover
from backend.app.models.user import User
from backend.app.services.investor_service import investor_service

logger = get_logger(__name__)

router = APIRouter()


class InvestorUpdateRequest(CamelModel):
    """投资者基本信息更新请求模型"""
    name: Optional[str] = Field(None, min_length=1, max_length=200, description="名称")
    country_code: Optional[str] = Field(None, min_length=2, max_length=2, description="国家代码")
    city: Optional[str] = Field(None, max_length=120, description="城市")
    parent_id: Optional[int] = Field(None, description="上级机构ID")
    is_group_representative: Optional[bool] = Field(None, description="是否集团代表")

    check_required = field_validator("name", "is_group_representative")(reject_null)


class SnapshotUpdateRequest(CamelModel):
    """季度快照编辑请求模型"""
    year: int = Field(..., ge=2000, le=2100, description="年度")
    quarter: int = Field(..., ge=1, le=4, description="季度")
    group_rank: Optional[int] = Field(None, ge=1, description="集团排名")
    group_child_count: Optional[int] = Field(None, ge=0, description="成员机构数")
    s_over_o: Optional[int] = Field(None, description="S/O")
    ord: Optional[int] = Field(None, description="ORD")
    adr: Optional[int] = Field(None, description="ADR")
    investor_type: Optional[InvestorType] = Field(None, description="投资者类型")
    style_tag: Optional[StyleTag] = Field(None, description="风格标签")
    style_note: Optional[str] = Field(None, max_length=120, description="风格备注")
    turnover: Optional[Turnover] = Field(None, description="换手率")
    orientation: Optional[Orientation] = Field(None, description="活跃度")
    last_activity_at: Optional[datetime] = Field(None, description="最近活动时间")


@router.get("/table", summary="投资者分组表格", description="按集团排名分页, 代表机构后紧跟其成员机构")
async def get_investors_table(
    year: int = Query(..., ge=2000, le=2100, description="年度"),
    quarter: int = Query(..., ge=1, le=4, description="季度"),
    search: Optional[str] = Query(None, description="名称或城市"),
    country: Optional[str] = Query(None, min_length=2, max_length=2, description="国家代码"),
    orientation: Optional[Orientation] = Query(None, description="活跃度"),
    turnover: Optional[Turnover] = Query(None, description="换手率"),
    investor_type: Optional[InvestorType] = Query(None, alias="investorType", description="投资者类型"),
    style_tag: Optional[StyleTag] = Query(None, alias="styleTag", description="风格标签"),
    only_parent: bool = Query(False, alias="onlyParent", description="仅代表机构"),
    include_children: bool = Query(True, alias="includeChildren", description="包含成员机构"),
    sort: str = Query("rank", description="排序字段"),
    order: Literal["asc", "desc"] = Query("asc", description="排序方向"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize", description="每页大小"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await investor_service.get_investors_table(
        year,
        quarter,
        db,
        page=page,
        page_size=page_size,
        include_children=include_children,
        only_parent=only_parent,
        order=order,
        search=search,
        country=country,
        orientation=orientation.value if orientation else None,
        turnover=turnover.value if turnover else None,
        investor_type=investor_type.value if investor_type else None,
        style_tag=style_tag.value if style_tag else None,
    )
    return success_response(data, "Investors table retrieved successfully")


@router.get("/top", summary="Top N 投资者")
async def get_top_investors(
    year: int = Query(..., ge=2000, le=2100, description="年度"),
    quarter: int = Query(..., ge=1, le=4, description="季度"),
    top_n: int = Query(10, ge=1, le=100, alias="topN", description="数量"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await investor_service.get_top_investors(year, quarter, top_n, db)
    return success_response(data, "Top investors retrieved successfully")


@router.get("/{investor_id}", summary="投资者详情", description="基于最新快照的详情页数据")
async def get_investor_detail(
    investor_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await investor_service.get_investor_detail_for_frontend(investor_id, db)
    return success_response(data, "Investor detail retrieved successfully")


@router.get("/{investor_id}/history", summary="快照变更历史")
async def get_investor_history(
    investor_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100, description="年度"),
    quarter: Optional[int] = Query(None, ge=1, le=4, description="季度"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize", description="每页大小"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await investor_service.get_investor_history(
        investor_id, db, year=year, quarter=quarter, page=page, page_size=page_size
    )
    return success_response(data, "Investor history retrieved successfully")


@router.patch("/{investor_id}", summary="更新投资者信息")
async def update_investor(
    investor_id: int,
    request: InvestorUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True, by_alias=True)
    data = await investor_service.update_investor(investor_id, updates, current_user, db)
    return success_response(data, "Investor updated successfully")


@router.patch("/{investor_id}/snapshot", summary="编辑季度快照", description="有变更时更新快照并记录历史")
async def update_snapshot(
    investor_id: int,
    request: SnapshotUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True, by_alias=True, exclude={"year", "quarter"})
    data = await investor_service.update_snapshot(
        investor_id, request.year, request.quarter, updates, current_user, db
    )
    return success_response(data, "Investor snapshot updated successfully")
