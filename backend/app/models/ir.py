"""
IRDesk Platform - IR活动数据模型
IR活动、细分活动、参与人、访客、关键词、附件与操作日志
"""

import enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, Text,
    ForeignKey, Index, Uuid, Enum, PrimaryKeyConstraint,
)

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class IRActivityStatus(enum.Enum):
    """IR活动状态"""
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"


class IRActivityCategory(enum.Enum):
    """IR活动类别"""
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"
    VACATION = "VACATION"
    HOLIDAY = "HOLIDAY"


class IRActivityTypePrimary(enum.Enum):
    """活动类型 - 大类"""
    NDR = "NDR"
    CONFERENCE_CALL = "CONFERENCE_CALL"
    SHAREHOLDERS_MEETING = "SHAREHOLDERS_MEETING"
    EARNINGS_ANNOUNCEMENT = "EARNINGS_ANNOUNCEMENT"
    OTHER = "OTHER"


class IRActivityTypeSecondary(enum.Enum):
    """活动类型 - 小类"""
    STRATEGY_MEETING = "STRATEGY_MEETING"
    ONE_ON_ONE = "ONE_ON_ONE"
    GROUP_MEETING = "GROUP_MEETING"
    OTHER = "OTHER"


class VisitorType(enum.Enum):
    """访客类型"""
    investor = "investor"
    broker = "broker"
    kb = "kb"


class IRLogType(enum.Enum):
    """活动日志类型"""
    create = "create"
    update = "update"
    status = "status"
    title = "title"
    attachment = "attachment"
    sub_activity = "sub_activity"
    keyword = "keyword"
    delete = "delete"


STATUS_LABELS = {
    IRActivityStatus.SCHEDULED: "예정",
    IRActivityStatus.IN_PROGRESS: "진행중",
    IRActivityStatus.COMPLETED: "완료",
    IRActivityStatus.SUSPENDED: "중단",
}

CATEGORY_LABELS = {
    IRActivityCategory.INTERNAL: "내부",
    IRActivityCategory.EXTERNAL: "외부",
    IRActivityCategory.VACATION: "휴가",
    IRActivityCategory.HOLIDAY: "공휴일",
}

TYPE_PRIMARY_LABELS = {
    IRActivityTypePrimary.NDR: "NDR",
    IRActivityTypePrimary.CONFERENCE_CALL: "컨퍼런스콜",
    IRActivityTypePrimary.SHAREHOLDERS_MEETING: "주주총회",
    IRActivityTypePrimary.EARNINGS_ANNOUNCEMENT: "실적발표",
    IRActivityTypePrimary.OTHER: "기타",
}

TYPE_SECONDARY_LABELS = {
    IRActivityTypeSecondary.STRATEGY_MEETING: "전략회의",
    IRActivityTypeSecondary.ONE_ON_ONE: "1:1미팅",
    IRActivityTypeSecondary.GROUP_MEETING: "그룹미팅",
    IRActivityTypeSecondary.OTHER: "기타",
}

# 活动限制
IR_ACTIVITY_LIMITS = {
    "max_participants": 50,
    "max_visitors": 50,
    "max_files": 10,
    "max_file_size": 50 * 1024 * 1024,
    "max_total_file_size": 500 * 1024 * 1024,
    "max_keywords": 5,
}

ALLOWED_ATTACHMENT_TYPES = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/png",
    "image/jpeg",
}


class IRActivity(Base):
    """IR活动表"""

    __tablename__ = "ir_activities"

    id = Column(String(50), primary_key=True, comment="活动ID act-<ts>-<rand>")
    title = Column(String(255), nullable=False, comment="标题")
    start_datetime = Column(DateTime(timezone=True), nullable=False, comment="开始时间")
    end_datetime = Column(DateTime(timezone=True), comment="结束时间")
    status = Column(Enum(IRActivityStatus, name="ir_activity_status"), nullable=False, default=IRActivityStatus.SCHEDULED)

    # 日历显示
    all_day = Column(Boolean, nullable=False, default=False, comment="全天")
    category = Column(Enum(IRActivityCategory, name="ir_activity_category"), nullable=False, comment="类别")
    location = Column(String(255), comment="地点")
    description = Column(Text, comment="描述")

    # 分类
    type_primary = Column(String(50), nullable=False, comment="活动类型大类")
    type_secondary = Column(String(50), comment="活动类型小类")

    # 富文本
    memo = Column(Text, comment="备忘")
    content_html = Column(Text, comment="HTML内容")

    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="负责人")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    resolved_at = Column(DateTime(timezone=True), comment="完成时间")

    __table_args__ = (
        Index("idx_ir_activity_start", "start_datetime"),
        Index("idx_ir_activity_status", "status"),
        Index("idx_ir_activity_category", "category"),
    )

    def __repr__(self):
        return f"<IRActivity(id='{self.id}', title='{self.title}', status={self.status})>"


class IRSubActivity(Base):
    """IR细分活动表 (未设置的字段继承自父活动)"""

    __tablename__ = "ir_sub_activities"

    id = Column(String(50), primary_key=True, comment="细分活动ID sub-<ts>-<rand>")
    parent_activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False, comment="标题")
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="负责人")
    status = Column(Enum(IRActivityStatus, name="ir_activity_status"), nullable=False, default=IRActivityStatus.SCHEDULED)
    start_datetime = Column(DateTime(timezone=True))
    end_datetime = Column(DateTime(timezone=True))
    all_day = Column(Boolean, nullable=False, default=False)
    category = Column(Enum(IRActivityCategory, name="ir_activity_category"))
    location = Column(String(255))
    description = Column(Text)
    type_primary = Column(String(50))
    type_secondary = Column(String(50))
    memo = Column(Text)
    content_html = Column(Text)
    display_order = Column(Integer, nullable=False, default=0, comment="显示顺序")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_ir_sub_activity_parent", "parent_activity_id", "display_order"),
    )

    def __repr__(self):
        return f"<IRSubActivity(id='{self.id}', parent='{self.parent_activity_id}')>"


class IRActivityKbParticipant(Base):
    """IR活动内部参与人表"""

    __tablename__ = "ir_activity_kb_participants"

    activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), comment="角色")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("activity_id", "user_id"),
    )


class IRActivityVisitor(Base):
    """IR活动外部访客表"""

    __tablename__ = "ir_activity_visitors"

    activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    visitor_name = Column(String(255), nullable=False, comment="访客名称")
    visitor_type = Column(Enum(VisitorType, name="ir_visitor_type"), comment="访客类型")
    company = Column(String(255), comment="所属机构")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("activity_id", "visitor_name"),
    )


class IRActivityKeyword(Base):
    """IR活动关键词表 (每个活动最多5个)"""

    __tablename__ = "ir_activity_keywords"

    activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    keyword = Column(String(50), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("activity_id", "keyword"),
    )


class IRActivityAttachment(Base):
    """IR活动附件表"""

    __tablename__ = "ir_activity_attachments"

    id = Column(String(50), primary_key=True)
    activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String(255), nullable=False, comment="文件名")
    file_size = Column(BigInteger, comment="文件大小(字节)")
    mime_type = Column(String(100), comment="MIME类型")
    storage_url = Column(String(500), comment="存储URL")
    uploaded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="上传人")
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_ir_attachment_activity", "activity_id"),
    )


class IRActivityLog(Base):
    """IR活动操作日志表"""

    __tablename__ = "ir_activity_logs"

    id = Column(String(50), primary_key=True)
    activity_id = Column(String(50), ForeignKey("ir_activities.id", ondelete="CASCADE"), nullable=False)
    log_type = Column(Enum(IRLogType, name="ir_log_type"), nullable=False, comment="日志类型")
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_name = Column(String(100), nullable=False, comment="操作人名称")
    message = Column(Text, nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_ir_log_activity_created", "activity_id", "created_at"),
    )


class IRSubActivityKbParticipant(Base):
    """细分活动内部参与人表"""

    __tablename__ = "ir_sub_activity_kb_participants"

    sub_activity_id = Column(String(50), ForeignKey("ir_sub_activities.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("sub_activity_id", "user_id"),
    )


class IRSubActivityVisitor(Base):
    """细分活动外部访客表"""

    __tablename__ = "ir_sub_activity_visitors"

    sub_activity_id = Column(String(50), ForeignKey("ir_sub_activities.id", ondelete="CASCADE"), nullable=False)
    visitor_name = Column(String(255), nullable=False)
    visitor_type = Column(Enum(VisitorType, name="ir_visitor_type"))
    company = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("sub_activity_id", "visitor_name"),
    )


class IRSubActivityKeyword(Base):
    """细分活动关键词表"""

    __tablename__ = "ir_sub_activity_keywords"

    sub_activity_id = Column(String(50), ForeignKey("ir_sub_activities.id", ondelete="CASCADE"), nullable=False)
    keyword = Column(String(50), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        PrimaryKeyConstraint("sub_activity_id", "keyword"),
    )
