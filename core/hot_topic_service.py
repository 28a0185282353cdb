import json
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from core.db import atomic
from core.errors import NotFound, ValidationError
from core.events import E, log_event
from core.log import get_logger
from core.models.hot_topic import HotTopic
from core.query import ListOptions, SortSpec, paginate

logger = get_logger(__name__)

TRENDING_THRESHOLD = 80

HOT_TOPIC_SORT = SortSpec(HotTopic, ["hotness_score", "created_at", "title"], "hotness_score")

SAMPLE_HOT_TOPICS = [
    ("人工智能写作助手", "探索AI如何改变内容创作方式", "technology", "weibo", 85, {"trend": "up"}, "AI,写作,技术"),
    ("微信公众号运营", "分享微信公众号的运营技巧和策略", "marketing", "wechat", 72, {"trend": "stable"}, "微信,运营,营销"),
    ("内容营销策略", "如何通过优质内容吸引目标受众", "marketing", "zhihu", 68, {"trend": "up"}, "营销,内容,策略"),
    ("SEO优化技巧", "提升文章搜索引擎排名的实用技巧", "seo", "baidu", 78, {"trend": "up"}, "SEO,优化,搜索"),
    ("社交媒体趋势", "2024年社交媒体发展趋势分析", "social", "douyin", 65, {"trend": "down"}, "社交,趋势,媒体"),
]


def _json_load(value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _json_dump(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def hot_topic_to_dict(topic: HotTopic) -> Dict:
    return {
        "id": topic.id,
        "title": topic.title,
        "summary": topic.summary,
        "category": topic.category,
        "source": topic.source,
        "hotness_score": int(topic.hotness_score or 0),
        "trend_data": _json_load(topic.trend_data),
        "related_keywords": topic.related_keywords,
        "created_at": topic.created_at.isoformat() if topic.created_at else None,
        "updated_at": topic.updated_at.isoformat() if topic.updated_at else None,
    }


def list_hot_topics(session, options: ListOptions, category: str = None) -> Tuple[List[Dict], Dict]:
    query = session.query(HotTopic)
    if category:
        query = query.filter(HotTopic.category == category)
    items, pagination = paginate(query, options, HOT_TOPIC_SORT)
    return [hot_topic_to_dict(item) for item in items], pagination


def get_hot_topic(session, topic_id: int) -> Dict:
    topic = session.query(HotTopic).filter(HotTopic.id == topic_id).first()
    if topic is None:
        raise NotFound("Hot topic not found")
    return hot_topic_to_dict(topic)


def list_by_category(session, category: str, limit: int = 10) -> List[Dict]:
    rows = (
        session.query(HotTopic)
        .filter(HotTopic.category == category)
        .order_by(HotTopic.hotness_score.desc(), HotTopic.id.desc())
        .limit(max(1, int(limit or 10)))
        .all()
    )
    return [hot_topic_to_dict(row) for row in rows]


def list_trending(session, limit: int = 10) -> List[Dict]:
    rows = (
        session.query(HotTopic)
        .filter(HotTopic.hotness_score > TRENDING_THRESHOLD)
        .order_by(HotTopic.hotness_score.desc(), HotTopic.id.desc())
        .limit(max(1, int(limit or 10)))
        .all()
    )
    return [hot_topic_to_dict(row) for row in rows]


def create_hot_topic(session, payload: Dict) -> Dict:
    title = str(payload.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")
    try:
        hotness = int(payload.get("hotness_score") or 0)
    except (TypeError, ValueError):
        raise ValidationError("hotness_score must be an integer")
    topic = HotTopic(
        title=title,
        summary=payload.get("summary"),
        category=payload.get("category"),
        source=payload.get("source"),
        hotness_score=hotness,
        trend_data=_json_dump(payload.get("trend_data")),
        related_keywords=payload.get("related_keywords"),
    )
    with atomic(session):
        session.add(topic)
    log_event(logger, E.HOT_TOPIC_CREATE, topic_id=topic.id, category=topic.category or "")
    return hot_topic_to_dict(topic)


def seed_sample_topics(session) -> int:
    """空库时写入示例热点，返回写入条数。"""
    count = session.query(func.count(HotTopic.id)).scalar() or 0
    if count:
        return 0
    with atomic(session):
        for title, summary, category, source, score, trend, keywords in SAMPLE_HOT_TOPICS:
            session.add(HotTopic(
                title=title,
                summary=summary,
                category=category,
                source=source,
                hotness_score=score,
                trend_data=_json_dump(trend),
                related_keywords=keywords,
            ))
    log_event(logger, E.HOT_TOPIC_SEED, count=len(SAMPLE_HOT_TOPICS))
    return len(SAMPLE_HOT_TOPICS)
