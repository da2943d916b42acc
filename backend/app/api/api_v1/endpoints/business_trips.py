"""
IRDesk Platform - 出差管理API端点
城市、场所、到访记录与点评
"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.models.business_trip import CompanionType, PlaceType
from backend.app.models.user import User
from backend.app.services.business_trip_service import business_trip_service

router = APIRouter()


class CityCreateRequest(CamelModel):
    """城市创建请求模型"""
    name: str = Field(..., min_length=1, max_length=100, description="城市名称")
    name_en: str = Field(..., min_length=1, max_length=100, description="英文名称")
    country_code: str = Field(..., min_length=2, max_length=2, description="国家代码")
    timezone: Optional[str] = Field(None, max_length=50, description="时区")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="纬度")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="经度")


class PlaceCreateRequest(CamelModel):
    """场所创建请求模型"""
    name: str = Field(..., min_length=1, max_length=200, description="名称")
    type: PlaceType = Field(..., description="类型 HOTEL/RESTAURANT")
    city_id: int = Field(..., description="城市ID")
    address: str = Field(..., min_length=1, description="地址")
    phone: Optional[str] = Field(None, max_length=50, description="电话")
    website: Optional[str] = Field(None, max_length=300, description="网站")
    notes: Optional[str] = Field(None, description="备注")


class VisitCreateRequest(CamelModel):
    """到访记录请求模型"""
    place_id: int = Field(..., description="场所ID")
    start_date: date = Field(..., description="开始日期")
    end_date: date = Field(..., description="结束日期")
    nights: Optional[int] = Field(None, ge=0, description="住宿晚数")
    companions: Optional[List[CompanionType]] = Field(None, description="同行人类型")
    notes: Optional[str] = Field(None, description="备注")


class ReviewCreateRequest(CamelModel):
    """点评请求模型"""
    place_id: int = Field(..., description="场所ID")
    visit_id: int = Field(..., description="到访记录ID")
    rating: int = Field(..., ge=1, le=5, description="评分 1-5")
    content: Optional[str] = Field(None, description="点评内容")


@router.get("/map-statistics", summary="地图统计")
async def get_map_statistics(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await business_trip_service.get_map_statistics(db)


@router.get("/cities", summary="城市列表")
async def get_cities(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await business_trip_service.get_cities(db)


@router.post("/cities", status_code=status.HTTP_201_CREATED, summary="创建城市")
async def create_city(
    request: CityCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = request.model_dump(exclude_unset=True)
    data["country_code"] = data["country_code"].upper()
    return await business_trip_service.create_city(data, db)


@router.get("/cities/{city_id}/places", summary="城市场所列表")
async def get_places_by_city(
    city_id: int,
    place_type: Optional[PlaceType] = Query(None, alias="type", description="场所类型"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await business_trip_service.get_places_by_city(
        city_id, db, place_type=place_type.value if place_type else None
    )


@router.post("/places", status_code=status.HTTP_201_CREATED, summary="创建场所")
async def create_place(
    request: PlaceCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await business_trip_service.create_place(request.model_dump(exclude_unset=True), db)


@router.get("/places/{place_id}", summary="场所详情")
async def get_place_detail(
    place_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await business_trip_service.get_place_detail(place_id, db)


@router.post("/visits", status_code=status.HTTP_201_CREATED, summary="记录到访")
async def create_visit(
    request: VisitCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await business_trip_service.create_visit(request.model_dump(exclude_unset=True), current_user, db)


@router.post("/reviews", status_code=status.HTTP_201_CREATED, summary="添加点评")
async def create_review(
    request: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await business_trip_service.create_review(request.model_dump(exclude_unset=True), current_user, db)
