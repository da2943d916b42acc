"""
IRDesk Platform - 认证API端点
注册、登录、当前用户、个人资料、登出与令牌刷新
"""

import re
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.logging import get_logger
from backend.app.models.user import User
from backend.app.services.auth_service import auth_service, serialize_user

logger = get_logger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterRequest(CamelModel):
    """注册请求模型"""
    email: str = Field(..., max_length=255, description="邮箱")
    password: str = Field(..., min_length=6, description="密码")
    name: str = Field(..., min_length=1, max_length=100, description="姓名")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not EMAIL_PATTERN.match(v):
            raise ValueError("邮箱格式不正确")
        return v


class LoginRequest(CamelModel):
    """登录请求模型"""
    email: str = Field(..., description="邮箱")
    password: str = Field(..., description="密码")


class ProfileUpdateRequest(CamelModel):
    """个人资料更新请求模型"""
    name: Optional[str] = Field(None, min_length=1, max_length=100, description="姓名")
    avatar: Optional[str] = Field(None, max_length=500, description="头像URL")

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, v):
        if v is not None and not v.startswith(("http://", "https://", "/")):
            raise ValueError("头像必须为URL")
        return v


class RefreshRequest(CamelModel):
    """令牌刷新请求模型"""
    refresh_token: str = Field(..., min_length=1, description="刷新令牌")


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="用户注册",
    description="注册新用户并返回访问令牌与刷新令牌",
)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.register(request.email, request.password, request.name, db)


@router.post("/login", summary="用户登录", description="邮箱密码登录")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.login(request.email, request.password, db)


@router.get("/me", summary="当前用户")
async def me(current_user: User = Depends(get_current_user)):
    return serialize_user(current_user, detailed=True)


@router.patch("/profile", summary="更新个人资料")
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.update_profile(current_user, db, name=request.name, avatar=request.avatar)


@router.post("/logout", summary="登出", description="吊销当前用户的所有刷新令牌")
async def logout(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await auth_service.logout(current_user, db)


@router.post("/refresh", summary="刷新令牌", description="轮换刷新令牌并签发新的令牌对")
async def refresh(request: RefreshRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.refresh(request.refresh_token, db)
