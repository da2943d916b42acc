"""
IRDesk Platform - 投资者数据模型
国家、投资者、季度快照、变更历史及详情页数据
"""

import enum
from sqlalchemy import (
    Column, Integer, SmallInteger, String, DateTime, Boolean, JSON, Text,
    ForeignKey, Index, UniqueConstraint, Uuid, Enum,
)

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class InvestorType(enum.Enum):
    """投资者类型"""
    INVESTMENT_ADVISOR = "INVESTMENT_ADVISOR"
    HEDGE_FUND = "HEDGE_FUND"
    PENSION = "PENSION"
    SOVEREIGN = "SOVEREIGN"
    MUTUAL_FUND = "MUTUAL_FUND"
    ETF = "ETF"
    BANK = "BANK"
    INSURANCE = "INSURANCE"
    OTHER = "OTHER"


class StyleTag(enum.Enum):
    """投资者风格标签"""
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"
    QUESTION_HEAVY = "QUESTION_HEAVY"
    PICKY = "PICKY"
    OTHER = "OTHER"


class Turnover(enum.Enum):
    """换手水平"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Orientation(enum.Enum):
    """活跃度"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


# 前端展示标签
INVESTOR_TYPE_LABELS = {
    InvestorType.INVESTMENT_ADVISOR: "투자자문사",
    InvestorType.HEDGE_FUND: "헤지펀드",
    InvestorType.PENSION: "연기금",
    InvestorType.SOVEREIGN: "국부펀드",
    InvestorType.MUTUAL_FUND: "뮤추얼펀드",
    InvestorType.ETF: "ETF",
    InvestorType.BANK: "은행",
    InvestorType.INSURANCE: "보험사",
    InvestorType.OTHER: "기타",
}

STYLE_TAG_LABELS = {
    StyleTag.POSITIVE: "긍정적",
    StyleTag.NEUTRAL: "중립적",
    StyleTag.NEGATIVE: "부정적",
    StyleTag.QUESTION_HEAVY: "질문 많음",
    StyleTag.PICKY: "까칠함",
    StyleTag.OTHER: "기타",
}


class Country(Base):
    """国家表"""

    __tablename__ = "countries"

    code = Column(String(2), primary_key=True, comment="ISO国家代码")
    name_ko = Column(String(100), comment="韩文名称")
    name_en = Column(String(100), comment="英文名称")

    def __repr__(self):
        return f"<Country(code='{self.code}', name_ko='{self.name_ko}')>"


class Investor(Base):
    """投资者表 (集团代表与成员机构)"""

    __tablename__ = "investors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, comment="机构名称")
    parent_id = Column(Integer, ForeignKey("investors.id", ondelete="SET NULL"), comment="所属集团代表ID")
    country_code = Column(String(2), ForeignKey("countries.code"), comment="国家代码")
    city = Column(String(120), comment="城市")
    is_group_representative = Column(Boolean, nullable=False, default=False, comment="是否集团代表")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_investor_name", "name"),
        Index("idx_investor_parent", "parent_id"),
        Index("idx_investor_country", "country_code"),
    )

    def __repr__(self):
        return f"<Investor(id={self.id}, name='{self.name}')>"


class InvestorSnapshot(Base):
    """投资者季度快照表"""

    __tablename__ = "investor_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False, comment="投资者ID")
    year = Column(SmallInteger, nullable=False, comment="年度")
    quarter = Column(SmallInteger, nullable=False, comment="季度 1-4")

    # 集团信息
    group_rank = Column(Integer, comment="集团排名")
    group_child_count = Column(SmallInteger, comment="成员机构数")

    # 持股指标
    s_over_o = Column(Integer, comment="% S/O")
    ord = Column(Integer, comment="普通股持股数")
    adr = Column(Integer, comment="ADR持股数")

    # 画像
    investor_type = Column(Enum(InvestorType, name="investor_type"), comment="投资者类型")
    style_tag = Column(Enum(StyleTag, name="style_tag"), comment="风格标签")
    style_note = Column(String(120), comment="风格备注")
    turnover = Column(Enum(Turnover, name="turnover"), comment="换手水平")
    orientation = Column(Enum(Orientation, name="orientation"), comment="活跃度")
    last_activity_at = Column(DateTime(timezone=True), comment="最近活动时间")

    upload_batch_id = Column(Integer, ForeignKey("gid_upload_batches.id", ondelete="SET NULL"), comment="来源上传批次")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("investor_id", "year", "quarter", name="uq_investor_snapshots_period"),
        Index("idx_snapshot_period", "year", "quarter"),
        Index("idx_snapshot_period_rank", "year", "quarter", "group_rank"),
    )

    def __repr__(self):
        return f"<InvestorSnapshot(investor_id={self.investor_id}, period={self.year}Q{self.quarter})>"


class InvestorHistory(Base):
    """投资者快照变更历史表"""

    __tablename__ = "investor_histories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False, comment="投资者ID")
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="发生时间")
    year = Column(SmallInteger, nullable=False, comment="年度")
    quarter = Column(SmallInteger, nullable=False, comment="季度")
    updated_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="修改人")
    changes = Column(JSON, nullable=False, comment="变更内容 {field: [old, new]}")

    __table_args__ = (
        Index("idx_history_investor_period", "investor_id", "year", "quarter"),
    )

    def __repr__(self):
        return f"<InvestorHistory(investor_id={self.investor_id}, period={self.year}Q{self.quarter})>"


class InvestorMeeting(Base):
    """投资者会议记录表"""

    __tablename__ = "investor_meetings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False)
    meeting_date = Column(DateTime(timezone=True), nullable=False, comment="会议时间")
    meeting_type = Column(String(50), nullable=False, comment="会议类型")
    topic = Column(String(200), comment="会议形式/主题")
    participants = Column(Text, comment="参与人")
    tags = Column(JSON, comment="话题标签列表")
    change_rate = Column(String(20), comment="持股变化率")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_meeting_investor_date", "investor_id", "meeting_date"),
    )


class InvestorInterest(Base):
    """投资者关注话题表"""

    __tablename__ = "investor_interests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False)
    topic = Column(String(100), nullable=False, comment="话题")
    frequency = Column(Integer, nullable=False, default=1, comment="出现频次")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_interest_investor", "investor_id"),
    )


class InvestorActivity(Base):
    """投资者活动记录表"""

    __tablename__ = "investor_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False)
    activity_date = Column(DateTime(timezone=True), nullable=False, comment="活动时间")
    activity_type = Column(String(50), nullable=False, comment="活动类型")
    description = Column(String(300), comment="描述")
    participants = Column(Text, comment="参与人")
    tags = Column(JSON, comment="标签列表")
    change_rate = Column(String(20), comment="持股变化率")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_activity_investor_date", "investor_id", "activity_date"),
    )


class InvestorCommunication(Base):
    """投资者沟通记录表"""

    __tablename__ = "investor_communications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    investor_id = Column(Integer, ForeignKey("investors.id", ondelete="CASCADE"), nullable=False)
    communication_date = Column(DateTime(timezone=True), nullable=False, comment="沟通时间")
    communication_type = Column(String(50), nullable=False, comment="沟通方式")
    description = Column(String(300), comment="描述")
    participants = Column(Text, comment="参与人")
    tags = Column(JSON, comment="标签列表")
    change_rate = Column(String(20), comment="持股变化率")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_communication_investor_date", "investor_id", "communication_date"),
    )
