import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext

from core.config import cfg, API_BASE
from core.errors import InvalidToken, Unauthorized
from core.events import E, log_event
from core.log import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 7 * 24 * 60
DEFAULT_SECRET = "change-me-in-config"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_BASE}/users/login", auto_error=False)


def _secret_key() -> str:
    return str(
        cfg.get("auth.secret", "")
        or os.getenv("JWT_SECRET", "")
        or DEFAULT_SECRET
    )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # 非法的哈希格式按校验失败处理
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, _secret_key(), algorithm=ALGORITHM)


def issue_token(user) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email})


def verify_token(token: str) -> Dict:
    """校验 token，返回当前用户身份 {"user_id", "email", "exp"}。"""
    raw = str(token or "").strip()
    if not raw:
        raise Unauthorized("Access token required")
    try:
        payload = jwt.decode(raw, _secret_key(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        log_event(logger, E.AUTH_TOKEN_INVALID, level="warning", reason="expired")
        raise InvalidToken()
    except jwt.InvalidTokenError:
        log_event(logger, E.AUTH_TOKEN_INVALID, level="warning", reason="invalid")
        raise InvalidToken()
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidToken()
    return {
        "user_id": user_id,
        "email": payload.get("email", ""),
        "exp": payload.get("exp"),
    }


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Dict:
    return verify_token(token)
