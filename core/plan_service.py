from datetime import datetime
from typing import Dict

from sqlalchemy import func

from core.errors import RateLimited
from core.events import E, log_event
from core.log import get_logger
from core.models.article import Article

logger = get_logger(__name__)

DEFAULT_PLAN_TIER = "free"

PLAN_DEFINITIONS: Dict[str, Dict] = {
    "free": {
        "tier": "free",
        "label": "Free",
        "daily_article_limit": 5,
        "monthly_article_limit": 50,
    },
    "pro": {
        "tier": "pro",
        "label": "Pro",
        "daily_article_limit": 20,
        "monthly_article_limit": 500,
    },
    "premium": {
        "tier": "premium",
        "label": "Premium",
        "daily_article_limit": 100,
        "monthly_article_limit": 3000,
    },
}


def normalize_plan_tier(tier: str) -> str:
    value = str(tier or "").strip().lower()
    return value if value in PLAN_DEFINITIONS else DEFAULT_PLAN_TIER


def get_plan_definition(tier: str) -> Dict:
    return PLAN_DEFINITIONS[normalize_plan_tier(tier)]


def get_plan_catalog():
    return [PLAN_DEFINITIONS[key] for key in ["free", "pro", "premium"]]


def _int_value(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def start_of_day(now: datetime = None) -> datetime:
    now = now or datetime.now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime = None) -> datetime:
    return start_of_day(now).replace(day=1)


def count_articles_since(session, user_id: int, since: datetime) -> int:
    return int(
        session.query(func.count(Article.id))
        .filter(Article.user_id == user_id, Article.created_at >= since)
        .scalar()
        or 0
    )


def get_usage_summary(session, user, now: datetime = None) -> Dict:
    now = now or datetime.now()
    plan = get_plan_definition(getattr(user, "subscription_type", DEFAULT_PLAN_TIER))
    daily_limit = _int_value(getattr(user, "daily_article_limit", None), plan["daily_article_limit"])
    monthly_limit = _int_value(getattr(user, "monthly_article_limit", None), plan["monthly_article_limit"])
    daily_used = count_articles_since(session, user.id, start_of_day(now))
    monthly_used = count_articles_since(session, user.id, start_of_month(now))
    return {
        "tier": plan["tier"],
        "label": plan["label"],
        "daily_limit": daily_limit,
        "daily_used": daily_used,
        "daily_remaining": max(0, daily_limit - daily_used),
        "monthly_limit": monthly_limit,
        "monthly_used": monthly_used,
        "monthly_remaining": max(0, monthly_limit - monthly_used),
        "date": now.strftime("%Y-%m-%d"),
    }


def ensure_generation_quota(session, user, now: datetime = None) -> Dict:
    """当日 / 当月文章数达到上限时抛出 RateLimited。"""
    summary = get_usage_summary(session, user, now=now)
    if summary["daily_used"] >= summary["daily_limit"]:
        log_event(logger, E.AI_USAGE_EXCEED, level="warning", user_id=user.id,
                  scope="daily", used=summary["daily_used"], limit=summary["daily_limit"])
        raise RateLimited(f"Daily article limit reached ({summary['daily_limit']} articles per day)")
    if summary["monthly_used"] >= summary["monthly_limit"]:
        log_event(logger, E.AI_USAGE_EXCEED, level="warning", user_id=user.id,
                  scope="monthly", used=summary["monthly_used"], limit=summary["monthly_limit"])
        raise RateLimited(f"Monthly article limit reached ({summary['monthly_limit']} articles per month)")
    return summary
