"""
IRDesk Platform - 日历API端点
"""

import uuid
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, reject_null
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.models.calendar import CalendarEventStatus, CalendarEventType
from backend.app.models.user import User
from backend.app.services.calendar_service import calendar_service

router = APIRouter()


class EventCreateRequest(CamelModel):
    """日程创建请求模型"""
    title: str = Field(..., min_length=1, max_length=200, description="标题")
    description: Optional[str] = Field(None, description="描述")
    event_type: Optional[CalendarEventType] = Field(None, description="事件类型")
    start_at: datetime = Field(..., description="开始时间")
    end_at: datetime = Field(..., description="结束时间")
    all_day: Optional[bool] = Field(None, description="全天")
    location: Optional[str] = Field(None, max_length=200, description="地点")
    status: Optional[CalendarEventStatus] = Field(None, description="状态")


class EventUpdateRequest(CamelModel):
    """日程更新请求模型 (部分更新)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200, description="标题")
    description: Optional[str] = Field(None, description="描述")
    event_type: Optional[CalendarEventType] = Field(None, description="事件类型")
    start_at: Optional[datetime] = Field(None, description="开始时间")
    end_at: Optional[datetime] = Field(None, description="结束时间")
    all_day: Optional[bool] = Field(None, description="全天")
    location: Optional[str] = Field(None, max_length=200, description="地点")
    status: Optional[CalendarEventStatus] = Field(None, description="状态")

    check_required = field_validator("title", "start_at", "end_at", "all_day")(reject_null)


@router.post("/events", status_code=status.HTTP_201_CREATED, summary="创建日程")
async def create_event(
    request: EventCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await calendar_service.create_event(request.model_dump(exclude_unset=True), current_user, db)
    return {"data": data}


@router.get("/events", summary="日程列表", description="返回与查询区间有重叠的日程")
async def list_events(
    range_from: Optional[datetime] = Query(None, alias="from", description="区间开始"),
    range_to: Optional[datetime] = Query(None, alias="to", description="区间结束"),
    owner_id: Optional[uuid.UUID] = Query(None, alias="ownerId", description="所有者"),
    event_status: Optional[CalendarEventStatus] = Query(None, alias="status", description="状态"),
    event_type: Optional[CalendarEventType] = Query(None, alias="eventType", description="事件类型"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await calendar_service.list_events(
        db,
        range_from=range_from,
        range_to=range_to,
        owner_id=owner_id,
        status=event_status.value if event_status else None,
        event_type=event_type.value if event_type else None,
    )
    return {"data": data}


@router.get("/events/{event_id}", summary="日程详情")
async def get_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await calendar_service.get_event(event_id, db)}


@router.put("/events/{event_id}", summary="更新日程")
async def update_event(
    event_id: int,
    request: EventUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await calendar_service.update_event(event_id, request.model_dump(exclude_unset=True), current_user, db)
    return {"data": data}


@router.delete("/events/{event_id}", summary="删除日程")
async def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await calendar_service.delete_event(event_id, current_user, db)


@router.get("/events/{event_id}/history", summary="日程变更历史")
async def get_event_history(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await calendar_service.get_history(event_id, db)}
