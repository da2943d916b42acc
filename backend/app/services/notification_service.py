"""
IRDesk Platform - 通知服务
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, and_, desc, func, insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundException
from backend.app.core.logging import get_logger, log_performance, audit_logger
from backend.app.models.notification import Notification
from backend.app.models.user import User
from backend.app.utils.datetime_utils import to_iso, utcnow

logger = get_logger(__name__)


def serialize_notification(notification: Notification, user: Optional[User] = None) -> Dict[str, Any]:
    data = {
        "id": str(notification.id),
        "userId": str(notification.user_id),
        "eventType": notification.event_type,
        "title": notification.title,
        "metadata": notification.meta_data or {},
        "read": notification.read,
        "createdAt": to_iso(notification.created_at),
    }
    if user is not None:
        data["user"] = {"id": str(user.id), "name": user.name, "avatar": user.avatar}
    return data


class NotificationService:
    """通知服务核心类"""

    async def create(
        self,
        user_id: uuid.UUID,
        event_type: str,
        db: AsyncSession,
        title: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        read: bool = False,
    ) -> Dict[str, Any]:
        if await db.get(User, user_id) is None:
            raise NotFoundException("User not found", {"userId": str(user_id)})

        notification = Notification(
            user_id=user_id,
            event_type=event_type,
            title=title or "",
            meta_data=metadata or {},
            read=read,
        )
        db.add(notification)
        await db.commit()
        return serialize_notification(notification)

    async def list_for_user(self, user: User, db: AsyncSession, unread_only: bool = False) -> List[Dict[str, Any]]:
        """当前用户的通知, 最新在前"""
        conditions = [Notification.user_id == user.id]
        if unread_only:
            conditions.append(Notification.read.is_(False))

        result = await db.execute(
            select(Notification)
            .where(and_(*conditions))
            .order_by(desc(Notification.created_at), desc(Notification.id))
        )
        return [serialize_notification(n, user) for n in result.scalars().all()]

    async def unread_count(self, user: User, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(and_(Notification.user_id == user.id, Notification.read.is_(False)))
        )
        return result.scalar_one()

    async def _get_owned(self, notification_id: uuid.UUID, user: User, db: AsyncSession) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None or notification.user_id != user.id:
            raise NotFoundException("Notification not found")
        return notification

    async def mark_as_read(self, notification_id: uuid.UUID, user: User, db: AsyncSession) -> Dict[str, Any]:
        notification = await self._get_owned(notification_id, user, db)
        notification.read = True
        await db.commit()
        return serialize_notification(notification)

    async def mark_all_as_read(self, user: User, db: AsyncSession) -> None:
        await db.execute(
            update(Notification)
            .where(and_(Notification.user_id == user.id, Notification.read.is_(False)))
            .values(read=True)
        )
        await db.commit()

    async def delete(self, notification_id: uuid.UUID, user: User, db: AsyncSession) -> None:
        notification = await self._get_owned(notification_id, user, db)
        await db.execute(delete(Notification).where(Notification.id == notification.id))
        await db.commit()

    @log_performance("notification_broadcast")
    async def broadcast(
        self,
        event_type: str,
        title: str,
        db: AsyncSession,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Dict[str, Any]:
        """
        向所有用户发送通知。

        按 NOTIFICATION_BATCH_SIZE 分批插入, 避免单条语句参数过多。
        """
        user_ids = list((await db.execute(select(User.id).order_by(User.created_at, User.id))).scalars().all())
        if not user_ids:
            return {"sent": 0, "totalUsers": 0, "message": "No users to notify"}

        batch_size = settings.NOTIFICATION_BATCH_SIZE
        created_at = utcnow()
        sent = 0
        for start in range(0, len(user_ids), batch_size):
            batch = user_ids[start:start + batch_size]
            await db.execute(
                insert(Notification),
                [
                    {
                        "id": uuid.uuid4(),
                        "user_id": user_id,
                        "event_type": event_type,
                        "title": title,
                        "meta_data": metadata or {},
                        "read": False,
                        "created_at": created_at,
                    }
                    for user_id in batch
                ],
            )
            sent += len(batch)

        if commit:
            await db.commit()

        audit_logger.log_system_event("notification_broadcast", "notifications", {"eventType": event_type, "sent": sent})
        return {
            "sent": sent,
            "totalUsers": len(user_ids),
            "message": f"Successfully sent notification to {sent} users",
        }


# 创建全局服务实例
notification_service = NotificationService()
