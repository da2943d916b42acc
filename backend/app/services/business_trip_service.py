"""
IRDesk Platform - 出差服务
城市、酒店/餐厅、到访记录与点评, 以及地图统计
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.core.logging import get_logger, log_performance
from backend.app.models.business_trip import City, Place, PlaceVisit, PlaceReview, PlaceType, CompanionType
from backend.app.models.investor import Country
from backend.app.models.user import User
from backend.app.utils.datetime_utils import to_iso, utcnow

logger = get_logger(__name__)


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def serialize_city(city: City, country: Optional[Country] = None) -> Dict[str, Any]:
    data = {
        "id": city.id,
        "name": city.name,
        "nameEn": city.name_en,
        "countryCode": city.country_code,
        "timezone": city.timezone,
        "latitude": _decimal_str(city.latitude),
        "longitude": _decimal_str(city.longitude),
    }
    if country is not None:
        data["countryName"] = country.name_ko
        data["countryNameEn"] = country.name_en
    return data


def serialize_place(place: Place, city_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": place.id,
        "name": place.name,
        "type": _enum_value(place.type),
        "address": place.address,
        "averageRating": _decimal_str(place.average_rating),
        "visitCount": place.visit_count or 0,
        "lastVisitDate": to_iso(place.last_visit_date),
        "phone": place.phone,
        "website": place.website,
        "notes": place.notes,
        "cityId": place.city_id,
        "cityName": city_name,
    }


def serialize_visit(visit: PlaceVisit) -> Dict[str, Any]:
    return {
        "id": visit.id,
        "placeId": visit.place_id,
        "userId": str(visit.user_id),
        "startDate": to_iso(visit.start_date),
        "endDate": to_iso(visit.end_date),
        "nights": visit.nights,
        "companions": visit.companions or [],
        "notes": visit.notes,
        "createdAt": to_iso(visit.created_at),
    }


def serialize_review(review: PlaceReview) -> Dict[str, Any]:
    return {
        "id": review.id,
        "placeId": review.place_id,
        "visitId": review.visit_id,
        "userId": str(review.user_id),
        "rating": review.rating,
        "content": review.content,
        "createdAt": to_iso(review.created_at),
    }


class BusinessTripService:
    """出差服务核心类"""

    async def get_cities(self, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(City, Country)
            .outerjoin(Country, Country.code == City.country_code)
            .order_by(City.name, City.id)
        )
        return [serialize_city(city, country) for city, country in result.all()]

    @log_performance("business_trip_map_statistics")
    async def get_map_statistics(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """有坐标城市的到访与场所统计"""
        cities = (
            await db.execute(
                select(City)
                .where(City.latitude.is_not(None), City.longitude.is_not(None))
                .order_by(City.name, City.id)
            )
        ).scalars().all()
        if not cities:
            return []
        city_ids = [city.id for city in cities]

        visit_stats = {
            city_id: (total, last_visit)
            for city_id, total, last_visit in (
                await db.execute(
                    select(Place.city_id, func.count(func.distinct(PlaceVisit.id)), func.max(PlaceVisit.start_date))
                    .join(Place, Place.id == PlaceVisit.place_id)
                    .where(Place.city_id.in_(city_ids))
                    .group_by(Place.city_id)
                )
            ).all()
        }
        place_stats = {
            city_id: (hotels, restaurants)
            for city_id, hotels, restaurants in (
                await db.execute(
                    select(
                        Place.city_id,
                        func.count(case((Place.type == PlaceType.HOTEL, 1))),
                        func.count(case((Place.type == PlaceType.RESTAURANT, 1))),
                    )
                    .where(Place.city_id.in_(city_ids))
                    .group_by(Place.city_id)
                )
            ).all()
        }

        items = []
        for city in cities:
            total_visits, last_visit = visit_stats.get(city.id, (0, None))
            hotels, restaurants = place_stats.get(city.id, (0, 0))
            data = serialize_city(city)
            data["statistics"] = {
                "totalVisits": int(total_visits or 0),
                "hotelCount": int(hotels or 0),
                "restaurantCount": int(restaurants or 0),
                "lastVisitDate": to_iso(last_visit),
            }
            items.append(data)
        return items

    async def create_city(self, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        if await db.get(Country, data["country_code"]) is None:
            raise NotFoundException(f"Country {data['country_code']} not found")

        values = dict(data)
        for key in ("latitude", "longitude"):
            if values.get(key) is not None:
                values[key] = Decimal(str(values[key]))
        city = City(**values)
        db.add(city)
        await db.commit()
        logger.info("City created", city_id=city.id, name=city.name)
        return serialize_city(city)

    async def _visits_for(self, place_ids: List[int], db: AsyncSession) -> Dict[int, List[PlaceVisit]]:
        grouped: Dict[int, List[PlaceVisit]] = {}
        if not place_ids:
            return grouped
        result = await db.execute(
            select(PlaceVisit)
            .where(PlaceVisit.place_id.in_(place_ids))
            .order_by(desc(PlaceVisit.start_date), desc(PlaceVisit.id))
        )
        for visit in result.scalars().all():
            grouped.setdefault(visit.place_id, []).append(visit)
        return grouped

    async def get_places_by_city(self, city_id: int, db: AsyncSession, place_type: Optional[str] = None) -> Dict[str, Any]:
        """城市下的场所, 按最近到访与到访次数倒序"""
        conditions = [Place.city_id == city_id]
        if place_type:
            conditions.append(Place.type == PlaceType(place_type))

        rows = (
            await db.execute(
                select(Place, City.name)
                .outerjoin(City, City.id == Place.city_id)
                .where(*conditions)
                .order_by(desc(Place.last_visit_date).nulls_last(), desc(Place.visit_count), Place.id)
            )
        ).all()
        visits = await self._visits_for([place.id for place, _ in rows], db)

        places = []
        for place, city_name in rows:
            data = serialize_place(place, city_name)
            data["visits"] = [serialize_visit(v) for v in visits.get(place.id, [])]
            places.append(data)
        return {"places": places}

    async def create_place(self, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        city = await db.get(City, data["city_id"])
        if city is None:
            raise NotFoundException(f"City with id {data['city_id']} not found")

        values = dict(data)
        values["type"] = PlaceType(_enum_value(values["type"]))
        place = Place(**values)
        db.add(place)
        await db.commit()
        logger.info("Place created", place_id=place.id, city_id=city.id)
        return serialize_place(place, city.name)

    async def _get_place(self, place_id: int, db: AsyncSession) -> Place:
        place = await db.get(Place, place_id)
        if place is None:
            raise NotFoundException(f"Place with id {place_id} not found")
        return place

    async def get_place_detail(self, place_id: int, db: AsyncSession) -> Dict[str, Any]:
        """场所详情, 含到访记录及各自的点评"""
        place = await self._get_place(place_id, db)
        city = await db.get(City, place.city_id)

        visits = (await self._visits_for([place_id], db)).get(place_id, [])
        reviews: Dict[int, List[PlaceReview]] = {}
        for review in (
            await db.execute(
                select(PlaceReview)
                .where(PlaceReview.place_id == place_id)
                .order_by(PlaceReview.created_at, PlaceReview.id)
            )
        ).scalars().all():
            reviews.setdefault(review.visit_id, []).append(review)

        data = serialize_place(place, city.name if city else None)
        data["visits"] = [
            dict(serialize_visit(v), reviews=[serialize_review(r) for r in reviews.get(v.id, [])])
            for v in visits
        ]
        return data

    async def create_visit(self, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        place = await self._get_place(data["place_id"], db)
        if data["end_date"] < data["start_date"]:
            raise ValidationException("endDate must not be before startDate")

        values = dict(data)
        values["companions"] = [CompanionType(_enum_value(c)).value for c in values.get("companions") or []]
        if values.get("nights") is None:
            values["nights"] = (data["end_date"] - data["start_date"]).days

        visit = PlaceVisit(user_id=user.id, **values)
        db.add(visit)
        await db.flush()
        await self._update_place_statistics(place, db)
        await db.commit()
        return serialize_visit(visit)

    async def create_review(self, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        """点评必须对应同一场所的到访记录"""
        place = await self._get_place(data["place_id"], db)
        visit = await db.get(PlaceVisit, data["visit_id"])
        if visit is None or visit.place_id != place.id:
            raise ValidationException("Visit does not belong to this place", {"visitId": data["visit_id"]})

        review = PlaceReview(user_id=user.id, **data)
        db.add(review)
        await db.flush()
        await self._update_place_statistics(place, db)
        await db.commit()
        return serialize_review(review)

    async def _update_place_statistics(self, place: Place, db: AsyncSession) -> None:
        """重新计算平均评分、到访次数与最近到访日期"""
        average = (
            await db.execute(select(func.avg(PlaceReview.rating)).where(PlaceReview.place_id == place.id))
        ).scalar_one()
        count, last_visit = (
            await db.execute(
                select(func.count(), func.max(PlaceVisit.start_date)).where(PlaceVisit.place_id == place.id)
            )
        ).one()

        place.average_rating = (
            Decimal(str(average)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if average is not None else None
        )
        place.visit_count = count or 0
        place.last_visit_date = last_visit
        place.updated_at = utcnow()


# 创建全局服务实例
business_trip_service = BusinessTripService()
