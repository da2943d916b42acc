"""
IRDesk Platform - 认证服务
注册、登录、令牌刷新与注销
"""

from typing import Any, Dict, Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AuthenticationException, ConflictException
from backend.app.core.logging import get_logger, log_performance, audit_logger
from backend.app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    hash_token,
    verify_password,
)
from backend.app.models.user import RefreshToken, User
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow

logger = get_logger(__name__)


def serialize_user(user: User, detailed: bool = False) -> Dict[str, Any]:
    """用户公开信息"""
    data = {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "avatar": user.avatar,
    }
    if detailed:
        data["isActive"] = user.is_active
        data["createdAt"] = to_iso(user.created_at)
    return data


class AuthService:
    """认证服务核心类"""

    async def get_by_email(self, email: str, db: AsyncSession) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @log_performance("auth_register")
    async def register(self, email: str, password: str, name: str, db: AsyncSession) -> Dict[str, Any]:
        """注册新用户并签发令牌"""
        email = email.lower()
        if await self.get_by_email(email, db):
            raise ConflictException("User with this email already exists", {"email": email})

        user = User(email=email, password=hash_password(password), name=name)
        db.add(user)
        await db.flush()

        session = await self._issue_tokens(user, db)
        await db.commit()

        logger.log_auth_event("register", user_id=str(user.id), email=email)
        audit_logger.log_user_action(user.id, "register", "user", user.id)
        return session

    @log_performance("auth_login")
    async def login(self, email: str, password: str, db: AsyncSession) -> Dict[str, Any]:
        """邮箱密码登录"""
        user = await self.get_by_email(email, db)
        if user is None or not verify_password(password, user.password):
            logger.log_auth_event("login", email=email.lower(), success=False)
            audit_logger.log_security_event("login_failed", details={"email": email.lower()})
            raise AuthenticationException("Invalid credentials")

        if not user.is_active:
            logger.log_auth_event("login", user_id=str(user.id), email=user.email, success=False)
            raise AuthenticationException("User account is deactivated")

        session = await self._issue_tokens(user, db)
        await db.commit()

        logger.log_auth_event("login", user_id=str(user.id), email=user.email)
        audit_logger.log_user_action(user.id, "login", "user", user.id)
        return session

    @log_performance("auth_refresh")
    async def refresh(self, refresh_token: str, db: AsyncSession) -> Dict[str, Any]:
        """刷新令牌轮换: 吊销旧令牌并签发新令牌对"""
        claims = decode_refresh_token(refresh_token)

        result = await db.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
        )
        stored = result.scalar_one_or_none()
        if stored is None or stored.is_revoked:
            audit_logger.log_security_event("refresh_rejected", user_id=claims.get("sub"))
            raise AuthenticationException("Invalid refresh token")
        if ensure_utc(stored.expires_at) <= utcnow():
            raise AuthenticationException("Refresh token expired")

        user = await db.get(User, stored.user_id)
        if user is None or not user.is_active or str(user.id) != str(claims.get("sub")):
            raise AuthenticationException("Invalid refresh token")

        stored.is_revoked = True
        session = await self._issue_tokens(user, db)
        await db.commit()

        logger.log_auth_event("refresh", user_id=str(user.id), email=user.email)
        return session

    async def logout(self, user: User, db: AsyncSession) -> Dict[str, str]:
        """吊销用户所有刷新令牌"""
        await db.execute(
            update(RefreshToken)
            .where(and_(RefreshToken.user_id == user.id, RefreshToken.is_revoked.is_(False)))
            .values(is_revoked=True)
        )
        await db.commit()

        logger.log_auth_event("logout", user_id=str(user.id), email=user.email)
        audit_logger.log_user_action(user.id, "logout", "user", user.id)
        return {"message": "Logged out successfully"}

    async def update_profile(
        self,
        user: User,
        db: AsyncSession,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Dict[str, Any]:
        """更新个人资料"""
        if name is not None:
            user.name = name
        if avatar is not None:
            user.avatar = avatar
        user.updated_at = utcnow()
        await db.commit()
        return serialize_user(user, detailed=True)

    async def _issue_tokens(self, user: User, db: AsyncSession) -> Dict[str, Any]:
        access_token = create_access_token(user.id, user.email)
        refresh_token, expires_in = create_refresh_token(user.id, user.email)
        db.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_token(refresh_token),
                expires_at=utcnow() + expires_in,
            )
        )
        return {
            "user": serialize_user(user),
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "tokenType": "Bearer",
        }


# 创建全局服务实例
auth_service = AuthService()
