"""
IRDesk Platform - 初始数据
参考国家列表与演示管理员账号
"""

from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import get_logger
from backend.app.core.security import hash_password
from backend.app.models.investor import Country
from backend.app.models.user import User

logger = get_logger(__name__)

# (代码, 韩文名称, 英文名称)
REFERENCE_COUNTRIES = [
    ("KR", "대한민국", "South Korea"),
    ("US", "미국", "United States"),
    ("GB", "영국", "United Kingdom"),
    ("JP", "일본", "Japan"),
    ("CN", "중국", "China"),
    ("HK", "홍콩", "Hong Kong"),
    ("SG", "싱가포르", "Singapore"),
    ("DE", "독일", "Germany"),
    ("FR", "프랑스", "France"),
    ("NL", "네덜란드", "Netherlands"),
    ("CH", "스위스", "Switzerland"),
    ("CA", "캐나다", "Canada"),
    ("AU", "호주", "Australia"),
    ("NO", "노르웨이", "Norway"),
    ("SE", "스웨덴", "Sweden"),
    ("AE", "아랍에미리트", "United Arab Emirates"),
    ("SA", "사우디아라비아", "Saudi Arabia"),
    ("LU", "룩셈부르크", "Luxembourg"),
    ("IE", "아일랜드", "Ireland"),
    ("TW", "대만", "Taiwan"),
]

DEMO_ADMIN_EMAIL = "admin@irdesk.local"
DEMO_ADMIN_NAME = "관리자"


async def seed_reference_data(db: AsyncSession, admin_password: str) -> Dict[str, int]:
    """插入缺失的国家与演示管理员, 已存在的记录保持不变"""
    existing = set((await db.execute(select(Country.code))).scalars().all())
    countries = [
        Country(code=code, name_ko=name_ko, name_en=name_en)
        for code, name_ko, name_en in REFERENCE_COUNTRIES
        if code not in existing
    ]
    db.add_all(countries)

    users = 0
    admin = (await db.execute(select(User).where(User.email == DEMO_ADMIN_EMAIL))).scalar_one_or_none()
    if admin is None:
        db.add(User(email=DEMO_ADMIN_EMAIL, password=hash_password(admin_password), name=DEMO_ADMIN_NAME))
        users = 1

    await db.commit()
    logger.info("Reference data seeded", countries=len(countries), users=users)
    return {"countries": len(countries), "users": users}
