"""
IRDesk Platform - 日历数据模型
日程事件及其审计历史
"""

import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, ForeignKey, Index, Uuid, Enum

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class CalendarEventType(enum.Enum):
    """日程类型"""
    MEETING = "MEETING"
    CALL = "CALL"
    TASK = "TASK"
    REMINDER = "REMINDER"
    OTHER = "OTHER"


class CalendarEventStatus(enum.Enum):
    """日程状态"""
    CONFIRMED = "CONFIRMED"
    TENTATIVE = "TENTATIVE"
    CANCELLED = "CANCELLED"


class CalendarEventAction(enum.Enum):
    """历史动作"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class CalendarEvent(Base):
    """日程事件表"""

    __tablename__ = "tb_calendar_event"

    event_id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="所有者")
    title = Column(String(200), nullable=False, comment="标题")
    description = Column(Text, comment="描述")
    event_type = Column(Enum(CalendarEventType, name="calendar_event_type"), nullable=False, default=CalendarEventType.MEETING)
    start_at = Column(DateTime(timezone=True), nullable=False, comment="开始时间")
    end_at = Column(DateTime(timezone=True), nullable=False, comment="结束时间")
    all_day = Column(Boolean, nullable=False, default=False)
    location = Column(String(200), comment="地点")
    status = Column(Enum(CalendarEventStatus, name="calendar_event_status"), nullable=False, default=CalendarEventStatus.CONFIRMED)
    updated_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="最后修改人")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_calendar_event_range", "start_at", "end_at"),
        Index("idx_calendar_event_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<CalendarEvent(id={self.event_id}, title='{self.title}')>"


class CalendarEventHistory(Base):
    """日程审计历史表 (删除后仍保留, 因此不设外键)"""

    __tablename__ = "tb_calendar_event_history"

    history_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, nullable=False, comment="日程ID")
    action = Column(Enum(CalendarEventAction, name="calendar_event_action"), nullable=False)
    changed_by = Column(Uuid, comment="操作人")
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    before = Column(JSON, comment="变更前")
    after = Column(JSON, comment="变更后")

    __table_args__ = (
        Index("idx_calendar_history_event", "event_id", "changed_at"),
    )
