"""
IRDesk Platform - 安全模块
密码哈希、JWT令牌签发与校验
"""

import hashlib
import re
import uuid
from datetime import timedelta
from typing import Any, Dict, Tuple

import bcrypt
from jose import JWTError, jwt

from backend.app.core.config import settings
from backend.app.core.exceptions import AuthenticationException
from backend.app.utils.datetime_utils import utcnow


_DURATION_RE = re.compile(r"^(\d+)([smhdw])$")
_DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}
_DEFAULT_DURATION = timedelta(days=14)

REFRESH_TOKEN_TYPE = "refresh"


def parse_duration(value: str) -> timedelta:
    """解析 7d / 12h / 30m 形式的时长, 纯数字按天计算"""
    value = (value or "").strip()
    if value.isdigit():
        return timedelta(days=int(value))
    match = _DURATION_RE.match(value)
    if not match:
        return _DEFAULT_DURATION
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit])


def hash_password(password: str) -> str:
    """bcrypt哈希密码"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """校验密码"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def hash_token(token: str) -> str:
    """刷新令牌只以SHA-256摘要形式存储"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(payload: Dict[str, Any], secret: str, expires_in: timedelta) -> str:
    now = utcnow()
    claims = {
        **payload,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: str, email: str) -> str:
    """签发访问令牌"""
    return _encode(
        {"sub": str(user_id), "email": email},
        settings.JWT_SECRET,
        parse_duration(settings.JWT_EXPIRES_IN),
    )


def create_refresh_token(user_id: str, email: str) -> Tuple[str, timedelta]:
    """签发刷新令牌, 同时返回有效期"""
    expires_in = parse_duration(settings.JWT_REFRESH_EXPIRES_IN)
    token = _encode(
        {"sub": str(user_id), "email": email, "typ": REFRESH_TOKEN_TYPE},
        settings.JWT_REFRESH_SECRET,
        expires_in,
    )
    return token, expires_in


def decode_access_token(token: str) -> Dict[str, Any]:
    """校验访问令牌"""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationException("Invalid or expired token", {"reason": str(e)})
    if claims.get("typ") == REFRESH_TOKEN_TYPE or not claims.get("sub"):
        raise AuthenticationException("Invalid token")
    return claims


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """校验刷新令牌"""
    try:
        claims = jwt.decode(token, settings.JWT_REFRESH_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationException("Invalid refresh token", {"reason": str(e)})
    if claims.get("typ") != REFRESH_TOKEN_TYPE or not claims.get("sub"):
        raise AuthenticationException("Invalid refresh token")
    return claims
