"""
IRDesk Platform - 日历服务
日程增删改查, 每次变更写入审计历史
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.core.logging import get_logger
from backend.app.models.calendar import (
    CalendarEvent,
    CalendarEventHistory,
    CalendarEventAction,
    CalendarEventStatus,
    CalendarEventType,
)
from backend.app.models.user import User
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow

logger = get_logger(__name__)

EVENT_ENUMS = {"event_type": CalendarEventType, "status": CalendarEventStatus}


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


def serialize_event(event: CalendarEvent) -> Dict[str, Any]:
    return {
        "eventId": event.event_id,
        "ownerId": str(event.owner_id) if event.owner_id else None,
        "title": event.title,
        "description": event.description,
        "eventType": _enum_value(event.event_type),
        "startAt": to_iso(event.start_at),
        "endAt": to_iso(event.end_at),
        "allDay": bool(event.all_day),
        "location": event.location,
        "status": _enum_value(event.status),
        "updatedBy": str(event.updated_by) if event.updated_by else None,
        "createdAt": to_iso(event.created_at),
        "updatedAt": to_iso(event.updated_at),
    }


def serialize_history(history: CalendarEventHistory) -> Dict[str, Any]:
    return {
        "historyId": history.history_id,
        "eventId": history.event_id,
        "action": _enum_value(history.action),
        "changedBy": str(history.changed_by) if history.changed_by else None,
        "changedAt": to_iso(history.changed_at),
        "before": history.before,
        "after": history.after,
    }


class CalendarService:
    """日历服务核心类"""

    def _apply(self, event: CalendarEvent, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            if key in EVENT_ENUMS:
                if value is None:
                    continue
                value = EVENT_ENUMS[key](_enum_value(value))
            elif isinstance(value, datetime):
                value = ensure_utc(value)
            setattr(event, key, value)

        if event.start_at and event.end_at and ensure_utc(event.end_at) < ensure_utc(event.start_at):
            raise ValidationException("endAt must not be before startAt")

    def _record(
        self,
        db: AsyncSession,
        event_id: int,
        action: CalendarEventAction,
        user: User,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
    ) -> None:
        db.add(
            CalendarEventHistory(
                event_id=event_id,
                action=action,
                changed_by=user.id,
                before=before,
                after=after,
            )
        )

    async def create_event(self, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        event = CalendarEvent(owner_id=user.id, updated_by=user.id)
        self._apply(event, data)
        db.add(event)
        await db.flush()

        snapshot = serialize_event(event)
        self._record(db, event.event_id, CalendarEventAction.CREATE, user, None, snapshot)
        await db.commit()

        logger.info("Calendar event created", event_id=event.event_id, user_id=str(user.id))
        return snapshot

    async def list_events(
        self,
        db: AsyncSession,
        range_from: Optional[datetime] = None,
        range_to: Optional[datetime] = None,
        owner_id: Any = None,
        status: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """与查询区间有重叠的日程, 按开始时间倒序"""
        conditions = []
        if range_to is not None:
            conditions.append(CalendarEvent.start_at <= ensure_utc(range_to))
        if range_from is not None:
            conditions.append(CalendarEvent.end_at >= ensure_utc(range_from))
        if owner_id is not None:
            conditions.append(CalendarEvent.owner_id == owner_id)
        if status:
            conditions.append(CalendarEvent.status == CalendarEventStatus(status))
        if event_type:
            conditions.append(CalendarEvent.event_type == CalendarEventType(event_type))

        result = await db.execute(
            select(CalendarEvent)
            .where(*conditions)
            .order_by(desc(CalendarEvent.start_at), desc(CalendarEvent.event_id))
        )
        return [serialize_event(e) for e in result.scalars().all()]

    async def _get_event(self, event_id: int, db: AsyncSession) -> CalendarEvent:
        event = await db.get(CalendarEvent, event_id)
        if event is None:
            raise NotFoundException(f"Calendar event with ID {event_id} not found")
        return event

    async def get_event(self, event_id: int, db: AsyncSession) -> Dict[str, Any]:
        return serialize_event(await self._get_event(event_id, db))

    async def update_event(self, event_id: int, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        event = await self._get_event(event_id, db)
        before = serialize_event(event)

        self._apply(event, data)
        event.updated_by = user.id
        event.updated_at = utcnow()
        after = serialize_event(event)

        self._record(db, event_id, CalendarEventAction.UPDATE, user, before, after)
        await db.commit()
        return after

    async def delete_event(self, event_id: int, user: User, db: AsyncSession) -> Dict[str, str]:
        """删除日程; 不存在时视为已删除"""
        event = await db.get(CalendarEvent, event_id)
        if event is not None:
            before = serialize_event(event)
            await db.execute(delete(CalendarEvent).where(CalendarEvent.event_id == event_id))
            self._record(db, event_id, CalendarEventAction.DELETE, user, before, None)
            await db.commit()
            logger.info("Calendar event deleted", event_id=event_id, user_id=str(user.id))
        return {"status": "SUCCESS"}

    async def get_history(self, event_id: int, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(CalendarEventHistory)
            .where(CalendarEventHistory.event_id == event_id)
            .order_by(desc(CalendarEventHistory.changed_at), desc(CalendarEventHistory.history_id))
        )
        return [serialize_history(h) for h in result.scalars().all()]


# 创建全局服务实例
calendar_service = CalendarService()
