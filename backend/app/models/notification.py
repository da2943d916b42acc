"""
IRDesk Platform - 通知数据模型
"""

import enum
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, JSON, ForeignKey, Index, Uuid

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class NotificationEventType(enum.Enum):
    """通知事件类型"""
    IR_ACTIVITY_CREATED = "IR_ACTIVITY_CREATED"
    IR_ACTIVITY_UPDATED = "IR_ACTIVITY_UPDATED"
    IR_ACTIVITY_FIELD_UPDATED = "IR_ACTIVITY_FIELD_UPDATED"
    IR_ACTIVITY_DELETED = "IR_ACTIVITY_DELETED"
    INVESTOR_BULK_UPDATED = "INVESTOR_BULK_UPDATED"
    INVESTOR_UPDATED = "INVESTOR_UPDATED"
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"


# 允许的元数据字段
NOTIFICATION_METADATA_KEYS = (
    "activityId",
    "activityTitle",
    "fieldName",
    "investorCount",
    "quarter",
    "tripId",
    "tripTitle",
    "additionalActorCount",
    "additionalActorIds",
)


class Notification(Base):
    """通知表"""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String(50), nullable=False, comment="事件类型")
    title = Column(String(500), comment="标题")
    # metadata 为声明式保留属性名
    meta_data = Column("metadata", JSON, comment="事件元数据")
    read = Column(Boolean, nullable=False, default=False, comment="是否已读")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "read"),
        Index("idx_notification_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Notification(user_id='{self.user_id}', event_type='{self.event_type}', read={self.read})>"
