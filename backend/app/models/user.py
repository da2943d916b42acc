"""
IRDesk Platform - 用户数据模型
用户、刷新令牌、自选股与价格提醒
"""

import enum
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, UniqueConstraint, Uuid, Integer, Enum

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class AlertCondition(enum.Enum):
    """价格提醒条件"""
    above = "above"
    below = "below"


class User(Base):
    """用户表"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, comment="登录邮箱")
    password = Column(String(255), nullable=False, comment="bcrypt密码哈希")
    name = Column(String(100), nullable=False, comment="显示名称")
    avatar = Column(String(500), comment="头像URL")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否启用")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<User(email='{self.email}', name='{self.name}')>"


class RefreshToken(Base):
    """刷新令牌表 (仅存储哈希)"""

    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, comment="用户ID")
    token_hash = Column(String(128), nullable=False, comment="令牌SHA-256摘要")
    is_revoked = Column(Boolean, nullable=False, default=False, comment="是否已吊销")
    expires_at = Column(DateTime(timezone=True), nullable=False, comment="过期时间")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_refresh_token_hash", "token_hash"),
        Index("idx_refresh_token_user", "user_id"),
    )

    def __repr__(self):
        return f"<RefreshToken(user_id='{self.user_id}', revoked={self.is_revoked})>"


class Favorite(Base):
    """自选股表"""

    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, comment="用户ID")
    symbol = Column(String(10), nullable=False, comment="股票代码")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_favorites_user_symbol"),
    )

    def __repr__(self):
        return f"<Favorite(user_id='{self.user_id}', symbol='{self.symbol}')>"


class PriceAlert(Base):
    """价格提醒表"""

    __tablename__ = "price_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, comment="用户ID")
    symbol = Column(String(10), nullable=False, comment="股票代码")
    target_price = Column(String(20), nullable=False, comment="目标价格(十进制字符串)")
    condition = Column(Enum(AlertCondition, name="alert_condition"), nullable=False, comment="触发条件")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否有效")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_price_alert_user_active", "user_id", "is_active"),
    )

    def __repr__(self):
        return f"<PriceAlert(symbol='{self.symbol}', target={self.target_price}, condition={self.condition})>"
