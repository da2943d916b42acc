"""
IRDesk Platform - 依赖注入
Bearer令牌认证, 获取当前用户
"""

import uuid
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.exceptions import AuthenticationException
from backend.app.core.security import decode_access_token
from backend.app.models.user import User


bearer_scheme = HTTPBearer(auto_error=False, description="JWT访问令牌")


async def _resolve_user(token: str, db: AsyncSession) -> User:
    claims = decode_access_token(token)
    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        raise AuthenticationException("Invalid token subject")

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationException("User not found")
    if not user.is_active:
        raise AuthenticationException("User is inactive")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    返回当前认证用户。
    缺少/无效/过期令牌、用户不存在或已停用均返回401。
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Missing bearer token")
    return await _resolve_user(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """可选认证, 令牌缺失或无效时返回None"""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await _resolve_user(credentials.credentials, db)
    except AuthenticationException:
        return None
