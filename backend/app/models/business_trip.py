"""
IRDesk Platform - 出差数据模型
城市、酒店/餐厅、到访记录与点评
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Numeric, JSON, ForeignKey, Index, Uuid, Enum,
)

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class PlaceType(enum.Enum):
    """场所类型"""
    HOTEL = "HOTEL"
    RESTAURANT = "RESTAURANT"


class CompanionType(enum.Enum):
    """同行人类型"""
    C_LEVEL = "C_LEVEL"
    DIRECTOR = "DIRECTOR"
    MANAGER = "MANAGER"
    TEAM_MEMBER = "TEAM_MEMBER"
    PARTNER = "PARTNER"
    OTHER = "OTHER"


class City(Base):
    """城市表"""

    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, comment="城市名称")
    name_en = Column(String(100), nullable=False, comment="英文名称")
    country_code = Column(String(2), ForeignKey("countries.code", ondelete="CASCADE"), nullable=False)
    timezone = Column(String(50), comment="时区 如 Asia/Seoul")
    latitude = Column(Numeric(10, 7), comment="纬度")
    longitude = Column(Numeric(10, 7), comment="经度")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_city_name", "name"),
        Index("idx_city_country", "country_code"),
    )

    def __repr__(self):
        return f"<City(id={self.id}, name='{self.name}')>"


class Place(Base):
    """场所表 (统计字段为冗余存储)"""

    __tablename__ = "places"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, comment="名称")
    type = Column(Enum(PlaceType, name="place_type"), nullable=False, comment="类型")
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=False)
    address = Column(Text, nullable=False, comment="地址")

    average_rating = Column(Numeric(3, 2), comment="平均评分")
    visit_count = Column(Integer, nullable=False, default=0, comment="到访次数")
    last_visit_date = Column(Date, comment="最近到访日期")

    phone = Column(String(50))
    website = Column(String(300))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_place_city", "city_id"),
        Index("idx_place_type", "type"),
        Index("idx_place_last_visit", "last_visit_date"),
    )

    def __repr__(self):
        return f"<Place(id={self.id}, name='{self.name}', type={self.type})>"


class PlaceVisit(Base):
    """场所到访记录表"""

    __tablename__ = "place_visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(Date, nullable=False, comment="入住/到访日期")
    end_date = Column(Date, nullable=False, comment="离开日期")
    nights = Column(Integer, comment="住宿晚数")
    companions = Column(JSON, comment="同行人类型列表")
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_place_visit_place", "place_id"),
        Index("idx_place_visit_start", "start_date"),
    )


class PlaceReview(Base):
    """场所点评表"""

    __tablename__ = "place_reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False)
    visit_id = Column(Integer, ForeignKey("place_visits.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False, comment="评分 1-5")
    content = Column(Text, comment="点评内容")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_place_review_place", "place_id"),
        Index("idx_place_review_visit", "visit_id"),
    )
