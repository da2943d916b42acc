"""
IRDesk Platform - 通知API端点
"""

import uuid
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, success_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.models.notification import NOTIFICATION_METADATA_KEYS, NotificationEventType
from backend.app.models.user import User
from backend.app.services.notification_service import notification_service

router = APIRouter()


class NotificationPayload(CamelModel):
    event_type: NotificationEventType = Field(..., description="事件类型")
    title: str = Field(..., min_length=1, max_length=500, description="标题")
    metadata: Optional[Dict[str, Any]] = Field(None, description="事件元数据")

    @field_validator("metadata")
    @classmethod
    def known_metadata_keys(cls, value):
        if value:
            unknown = sorted(set(value) - set(NOTIFICATION_METADATA_KEYS))
            if unknown:
                raise ValueError(f"Unknown metadata keys: {', '.join(unknown)}")
        return value


class NotificationCreateRequest(NotificationPayload):
    """通知创建请求模型, 未指定用户时发给自己"""
    user_id: Optional[uuid.UUID] = Field(None, description="接收用户ID")
    read: bool = Field(False, description="是否已读")


class BroadcastRequest(NotificationPayload):
    """全员通知请求模型"""


@router.post("", status_code=status.HTTP_201_CREATED, summary="创建通知")
async def create_notification(
    request: NotificationCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await notification_service.create(
        request.user_id or current_user.id,
        request.event_type.value,
        db,
        title=request.title,
        metadata=request.metadata,
        read=request.read,
    )
    return success_response(data, "Notification created successfully")


@router.get("", summary="通知列表")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly", description="仅未读"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await notification_service.list_for_user(current_user, db, unread_only=unread_only)
    return success_response(data, "Notifications retrieved successfully")


@router.get("/unread-count", summary="未读数量")
async def unread_count(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    count = await notification_service.unread_count(current_user, db)
    return success_response({"count": count}, "Unread count retrieved successfully")


@router.patch("/read-all", summary="全部标记已读")
async def mark_all_as_read(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await notification_service.mark_all_as_read(current_user, db)
    return success_response(message="All notifications marked as read")


@router.post("/broadcast", summary="全员通知")
async def broadcast(
    request: BroadcastRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await notification_service.broadcast(request.event_type.value, request.title, db, metadata=request.metadata)
    return success_response(data, data["message"])


@router.patch("/{notification_id}/read", summary="标记已读")
async def mark_as_read(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await notification_service.mark_as_read(notification_id, current_user, db)
    return success_response(data, "Notification marked as read")


@router.delete("/{notification_id}", summary="删除通知")
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await notification_service.delete(notification_id, current_user, db)
    return success_response(message="Notification deleted successfully")
