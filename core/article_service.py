"""
文章服务

所有写操作只允许作者本人执行，非作者与不存在统一返回 NotFound；
word_count 始终由正文重新计算，不信任客户端传入的值。
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.db import atomic
from core.errors import NotFound, ValidationError
from core.events import E, log_event
from core.log import get_logger
from core.models.article import Article
from core.models.article_history import ArticleHistory
from core.models.base import ARTICLE_STATUS
from core.models.hot_topic import HotTopic
from core.models.user import User
from core.query import ListOptions, SortSpec, paginate

logger = get_logger(__name__)

ARTICLE_SORT = SortSpec(
    Article,
    ["created_at", "updated_at", "title", "word_count", "status"],
    "created_at",
)

DEFAULT_ARTICLE_TYPE = "educational"
DEFAULT_STYLE = "professional"
DEFAULT_STRUCTURE = "standard"

UPDATABLE_FIELDS = [
    "title",
    "content",
    "cover_image_url",
    "article_type",
    "style",
    "structure",
    "status",
    "tags",
]

NOT_FOUND_MESSAGE = "Article not found or unauthorized"


def count_words(text: str) -> int:
    return len(str(text or "").split())


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _json_load(value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _json_dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _tags_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ",".join(str(v).strip() for v in value if str(v).strip())
    return str(value)


def article_to_dict(article: Article, include_content: bool = True) -> Dict:
    data = {
        "id": article.id,
        "user_id": article.user_id,
        "hot_topic_id": article.hot_topic_id,
        "title": article.title,
        "cover_image_url": article.cover_image_url,
        "article_type": article.article_type,
        "style": article.style,
        "structure": article.structure,
        "word_count": int(article.word_count or 0),
        "status": article.status,
        "tags": article.tags,
        "ai_model": article.ai_model,
        "generation_time_seconds": article.generation_time_seconds,
        "additional_requirements": _json_load(article.additional_requirements),
        "wechat_sync_status": article.wechat_sync_status,
        "wechat_article_id": article.wechat_article_id,
        "wechat_sync_time": _iso(article.wechat_sync_time),
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
    }
    if include_content:
        data["content"] = article.content
        data["ai_prompt"] = article.ai_prompt
    return data


def write_history(session, user_id: int, article_id: int, action: str, metadata: Dict) -> ArticleHistory:
    """追加一条审计记录（不提交，由调用方的事务决定）。"""
    row = ArticleHistory(
        user_id=user_id,
        article_id=article_id,
        action=action,
        meta_json=_json_dump(metadata),
    )
    session.add(row)
    return row


def _joined_query(session):
    return (
        session.query(Article, User.username, HotTopic.title, HotTopic.summary)
        .outerjoin(User, Article.user_id == User.id)
        .outerjoin(HotTopic, Article.hot_topic_id == HotTopic.id)
    )


def _joined_to_dict(row, include_content: bool = True) -> Dict:
    article, username, topic_title, topic_summary = row
    data = article_to_dict(article, include_content=include_content)
    data["author_username"] = username
    data["hot_topic_title"] = topic_title
    if include_content:
        data["hot_topic_summary"] = topic_summary
    return data


def list_articles(
    session,
    options: ListOptions,
    status: str = None,
    user_id: int = None,
) -> Tuple[List[Dict], Dict]:
    query = _joined_query(session)
    if status:
        query = query.filter(Article.status == status)
    if user_id:
        query = query.filter(Article.user_id == user_id)
    rows, pagination = paginate(query, options, ARTICLE_SORT)
    return [_joined_to_dict(row) for row in rows], pagination


def list_user_articles(session, user_id: int, options: ListOptions, status: str = None) -> Tuple[List[Dict], Dict]:
    # 个人列表固定按创建时间倒序
    own = ListOptions(page=options.page, limit=options.limit, sort_by="created_at", order="DESC")
    return list_articles(session, own, status=status, user_id=user_id)


def get_article(session, article_id: int) -> Dict:
    row = _joined_query(session).filter(Article.id == article_id).first()
    if row is None:
        raise NotFound("Article not found")
    return _joined_to_dict(row)


def get_owned_article(session, user_id: int, article_id: int) -> Article:
    article = (
        session.query(Article)
        .filter(Article.id == article_id, Article.user_id == user_id)
        .first()
    )
    if article is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    return article


def ensure_hot_topic(session, hot_topic_id) -> Optional[int]:
    if hot_topic_id in (None, "", 0):
        return None
    exists = session.query(HotTopic.id).filter(HotTopic.id == hot_topic_id).first()
    if exists is None:
        raise NotFound("Hot topic not found")
    return int(hot_topic_id)


def _check_status(status: str) -> str:
    if status not in ARTICLE_STATUS.ALL:
        raise ValidationError(f"Invalid status: {status}")
    return status


def create_article(session, user_id: int, payload: Dict) -> Dict:
    title = str(payload.get("title") or "").strip()
    content = payload.get("content") or ""
    if not title or not str(content).strip():
        raise ValidationError("Title and content are required")

    status = _check_status(payload.get("status") or ARTICLE_STATUS.DRAFT)
    article = Article(
        user_id=user_id,
        hot_topic_id=ensure_hot_topic(session, payload.get("hot_topic_id")),
        title=title,
        content=content,
        cover_image_url=payload.get("cover_image_url"),
        article_type=payload.get("article_type") or DEFAULT_ARTICLE_TYPE,
        style=payload.get("style") or DEFAULT_STYLE,
        structure=payload.get("structure") or DEFAULT_STRUCTURE,
        word_count=count_words(content),
        status=status,
        tags=_tags_text(payload.get("tags")),
        additional_requirements=_json_dump(payload.get("additional_requirements")),
        published_at=datetime.now() if status == ARTICLE_STATUS.PUBLISHED else None,
    )
    with atomic(session):
        session.add(article)
        session.flush()
        write_history(session, user_id, article.id, "created", {"source": "manual"})
    log_event(logger, E.ARTICLE_CREATE, user_id=user_id, article_id=article.id, words=article.word_count)
    return article_to_dict(article)


def update_article(session, user_id: int, article_id: int, payload: Dict) -> Dict:
    """部分更新，payload 中出现的字段才会写入。"""
    article = get_owned_article(session, user_id, article_id)
    fields = [key for key in UPDATABLE_FIELDS if key in payload and payload[key] is not None]

    changes = {}
    for key in fields:
        value = payload[key]
        if key == "title":
            value = str(value).strip()
            if not value:
                raise ValidationError("Title cannot be empty")
        elif key == "status":
            _check_status(value)
        elif key == "tags":
            value = _tags_text(value)
        changes[key] = value

    for key, value in changes.items():
        setattr(article, key, value)
    if "content" in changes:
        article.word_count = count_words(changes["content"])
    if changes.get("status") == ARTICLE_STATUS.PUBLISHED and article.published_at is None:
        article.published_at = datetime.now()

    with atomic(session):
        article.updated_at = datetime.now()
        write_history(session, user_id, article.id, "updated", {"fields_updated": fields})
    log_event(logger, E.ARTICLE_UPDATE, user_id=user_id, article_id=article.id, fields=",".join(fields))
    return article_to_dict(article)


def _remove_article(session, article: Article) -> None:
    session.delete(article)
    session.flush()


def delete_article(session, user_id: int, article_id: int) -> None:
    article = get_owned_article(session, user_id, article_id)
    # 审计记录与删除在同一事务中
    with atomic(session):
        write_history(session, user_id, article.id, "deleted", {"reason": "user_action"})
        _remove_article(session, article)
    log_event(logger, E.ARTICLE_DELETE, user_id=user_id, article_id=article_id)
