"""
IRDesk Platform - API 主路由
汇总所有API端点
"""

from fastapi import APIRouter

from backend.app.api.api_v1.endpoints import (
    auth,
    favorites,
    investors,
    filters,
    gid,
    ir,
    files,
    crm,
    calendar,
    business_trips,
    notifications,
    portfolio,
)
from backend.app.api import API_TAGS

# 创建API路由器
api_router = APIRouter()

# 包含各个模块的路由
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=[API_TAGS["auth"]]
)

api_router.include_router(
    favorites.router,
    prefix="/favorites",
    tags=[API_TAGS["favorites"]]
)

api_router.include_router(
    favorites.alerts_router,
    prefix="/alerts",
    tags=[API_TAGS["alerts"]]
)

api_router.include_router(
    investors.router,
    prefix="/investors",
    tags=[API_TAGS["investors"]]
)

api_router.include_router(
    filters.router,
    prefix="/filters",
    tags=[API_TAGS["filters"]]
)

api_router.include_router(
    filters.metrics_router,
    prefix="/metrics",
    tags=[API_TAGS["metrics"]]
)

api_router.include_router(
    gid.router,
    prefix="/gid",
    tags=[API_TAGS["gid"]]
)

api_router.include_router(
    ir.router,
    prefix="/ir",
    tags=[API_TAGS["ir"]]
)

# /uploads 与 /files/upload 两个入口
api_router.include_router(
    files.router,
    tags=[API_TAGS["files"]]
)

api_router.include_router(
    crm.router,
    prefix="/crm",
    tags=[API_TAGS["crm"]]
)

api_router.include_router(
    calendar.router,
    prefix="/calendar",
    tags=[API_TAGS["calendar"]]
)

api_router.include_router(
    business_trips.router,
    prefix="/business-trips",
    tags=[API_TAGS["business_trips"]]
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=[API_TAGS["notifications"]]
)

api_router.include_router(
    portfolio.router,
    prefix="/portfolio",
    tags=[API_TAGS["portfolio"]]
)
