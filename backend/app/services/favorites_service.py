"""
IRDesk Platform - 自选股与价格提醒服务
"""

from typing import Any, Dict, List

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import get_logger
from backend.app.models.user import AlertCondition, Favorite, PriceAlert, User
from backend.app.utils.datetime_utils import to_iso

logger = get_logger(__name__)


def serialize_alert(alert: PriceAlert) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "symbol": alert.symbol,
        "targetPrice": alert.target_price,
        "condition": alert.condition.value,
        "isActive": alert.is_active,
        "createdAt": to_iso(alert.created_at),
    }


class FavoritesService:
    """自选股与价格提醒服务"""

    async def list_favorites(self, user: User, db: AsyncSession) -> List[str]:
        result = await db.execute(
            select(Favorite.symbol)
            .where(Favorite.user_id == user.id)
            .order_by(Favorite.created_at, Favorite.id)
        )
        return list(result.scalars().all())

    async def is_favorite(self, user: User, symbol: str, db: AsyncSession) -> bool:
        result = await db.execute(
            select(Favorite.id).where(and_(Favorite.user_id == user.id, Favorite.symbol == symbol))
        )
        return result.first() is not None

    async def add_favorite(self, user: User, symbol: str, db: AsyncSession) -> Dict[str, str]:
        """添加自选股, 已存在时不重复添加"""
        if not await self.is_favorite(user, symbol, db):
            db.add(Favorite(user_id=user.id, symbol=symbol))
            await db.commit()
            logger.info("Favorite added", user_id=str(user.id), symbol=symbol)
        return {"message": "Added to favorites", "symbol": symbol}

    async def remove_favorite(self, user: User, symbol: str, db: AsyncSession) -> Dict[str, str]:
        await db.execute(
            delete(Favorite).where(and_(Favorite.user_id == user.id, Favorite.symbol == symbol))
        )
        await db.commit()
        return {"message": "Removed from favorites", "symbol": symbol}

    async def list_active_alerts(self, user: User, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(PriceAlert)
            .where(and_(PriceAlert.user_id == user.id, PriceAlert.is_active.is_(True)))
            .order_by(PriceAlert.created_at.desc(), PriceAlert.id.desc())
        )
        return [serialize_alert(a) for a in result.scalars().all()]

    async def create_alert(
        self,
        user: User,
        symbol: str,
        target_price: str,
        condition: str,
        db: AsyncSession,
    ) -> Dict[str, Any]:
        alert = PriceAlert(
            user_id=user.id,
            symbol=symbol,
            target_price=target_price,
            condition=AlertCondition(condition),
        )
        db.add(alert)
        await db.commit()
        logger.info("Price alert created", user_id=str(user.id), symbol=symbol, condition=condition)
        return {"message": "Price alert created", "alert": serialize_alert(alert)}


# 创建全局服务实例
favorites_service = FavoritesService()
