import re
from typing import Dict, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from core.auth import hash_password, issue_token, verify_password
from core.db import atomic
from core.errors import Conflict, NotFound, Unauthorized, ValidationError
from core.events import E, log_event
from core.log import get_logger
from core.models.user import User
from core.plan_service import DEFAULT_PLAN_TIER, get_plan_definition, get_usage_summary

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
LOGIN_FAILED_MESSAGE = "Invalid email or password"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "subscription_type": user.subscription_type or DEFAULT_PLAN_TIER,
        "daily_article_limit": user.daily_article_limit,
        "monthly_article_limit": user.monthly_article_limit,
        "avatar_url": user.avatar_url,
        "created_at": _iso(user.created_at),
    }


def _clean(value) -> str:
    return str(value or "").strip()


def register(session, username: str, email: str, password: str) -> Dict:
    username = _clean(username)
    email = _clean(email).lower()
    if not username or not email or not password:
        raise ValidationError("Username, email, and password are required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address")

    existing = session.query(User.id).filter(
        or_(User.email == email, User.username == username)
    ).first()
    if existing:
        log_event(logger, E.AUTH_REGISTER_CONFLICT, level="warning", username=username)
        raise Conflict("User with this email or username already exists")

    plan = get_plan_definition(DEFAULT_PLAN_TIER)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        subscription_type=plan["tier"],
        daily_article_limit=plan["daily_article_limit"],
        monthly_article_limit=plan["monthly_article_limit"],
    )
    try:
        with atomic(session):
            session.add(user)
    except IntegrityError:
        # 并发注册时由唯一约束兜底
        log_event(logger, E.AUTH_REGISTER_CONFLICT, level="warning", username=username, race=True)
        raise Conflict("User with this email or username already exists")

    log_event(logger, E.AUTH_REGISTER, user_id=user.id, username=user.username)
    return {"user": user_to_dict(user), "token": issue_token(user)}


def login(session, email: str, password: str) -> Dict:
    email = _clean(email).lower()
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = session.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.password_hash):
        log_event(logger, E.AUTH_LOGIN_FAIL, level="warning", email=email)
        raise Unauthorized(LOGIN_FAILED_MESSAGE)
    log_event(logger, E.AUTH_LOGIN_SUCCESS, user_id=user.id)
    return {"user": user_to_dict(user), "token": issue_token(user)}


def get_user(session, user_id: int) -> User:
    user = session.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def get_profile(session, user_id: int) -> Dict:
    user = get_user(session, user_id)
    data = user_to_dict(user)
    data["usage"] = get_usage_summary(session, user)
    return data


def update_profile(session, user_id: int, username: str = None, avatar_url: str = None) -> Dict:
    """仅更新传入的字段，None 表示保持原值。"""
    user = get_user(session, user_id)
    fields = []
    if username is not None:
        username = _clean(username)
        if not username:
            raise ValidationError("Username cannot be empty")
        if username != user.username:
            taken = session.query(User.id).filter(User.username == username, User.id != user.id).first()
            if taken:
                raise Conflict("Username already taken")
            user.username = username
            fields.append("username")
    if avatar_url is not None:
        user.avatar_url = _clean(avatar_url) or None
        fields.append("avatar_url")
    try:
        with atomic(session):
            session.add(user)
    except IntegrityError:
        raise Conflict("Username already taken")
    log_event(logger, E.USER_PROFILE_UPDATE, user_id=user.id, fields=",".join(fields))
    return user_to_dict(user)
