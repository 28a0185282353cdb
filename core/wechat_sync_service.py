import json
from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import func

from core.db import atomic
from core.errors import AlreadySynced, NotFound, UpstreamFailure, ValidationError
from core.events import E, log_event
from core.log import get_logger
from core.models.article import Article
from core.models.base import SYNC_LOG_STATUS, SYNC_STATUS
from core.models.sync_log import SyncLog
from core.models.user import User
from core.query import ListOptions, build_pagination
from core.wechat_publisher import WeChatPublisher

logger = get_logger(__name__)

SYNC_FAILED_MESSAGE = "Failed to sync article to WeChat"
NOT_FOUND_MESSAGE = "Article not found or unauthorized"


def _iso(value):
    return value.isoformat() if value else None


def sync_log_to_dict(row: SyncLog) -> Dict[str, Any]:
    response = None
    if row.wechat_response:
        try:
            response = json.loads(row.wechat_response)
        except ValueError:
            response = row.wechat_response
    return {
        "id": row.id,
        "article_id": row.article_id,
        "sync_status": row.sync_status,
        "wechat_article_id": row.wechat_article_id,
        "wechat_response": response,
        "error_message": row.error_message,
        "created_at": _iso(row.created_at),
    }


def _owned_article(session, user_id: int, article_id: int):
    row = (
        session.query(Article, User.username)
        .join(User, Article.user_id == User.id)
        .filter(Article.id == article_id, Article.user_id == user_id)
        .first()
    )
    if row is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    return row


def publish_article(session, user_id: int, article_id: int, publisher: WeChatPublisher) -> Dict[str, Any]:
    if not article_id:
        raise ValidationError("Article ID is required")
    article, author = _owned_article(session, user_id, article_id)
    if article.wechat_sync_status == SYNC_STATUS.SYNCED:
        log_event(logger, E.WECHAT_SYNC_SKIP, user_id=user_id, article_id=article.id)
        raise AlreadySynced()

    log_event(logger, E.WECHAT_SYNC_START, user_id=user_id, article_id=article.id, mode=publisher.mode)
    payload = {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "cover_image_url": article.cover_image_url,
        "author": author,
    }
    try:
        result = publisher.publish(payload)
    except Exception as e:
        with atomic(session):
            session.add(SyncLog(
                article_id=article.id,
                sync_status=SYNC_LOG_STATUS.FAILED,
                error_message=str(e),
            ))
            article.wechat_sync_status = SYNC_STATUS.FAILED
        log_event(logger, E.WECHAT_SYNC_FAIL, level="error", user_id=user_id, article_id=article.id, error=str(e))
        raise UpstreamFailure(SYNC_FAILED_MESSAGE, details=str(e)) from e

    remote_id = result["wechat_article_id"]
    sync_time = datetime.now()
    with atomic(session):
        article.wechat_sync_status = SYNC_STATUS.SYNCED
        article.wechat_article_id = remote_id
        article.wechat_sync_time = sync_time
        session.add(SyncLog(
            article_id=article.id,
            sync_status=SYNC_LOG_STATUS.SUCCESS,
            wechat_article_id=remote_id,
            wechat_response=json.dumps(result.get("response") or {}, ensure_ascii=False),
        ))
    log_event(logger, E.WECHAT_SYNC_COMPLETE, user_id=user_id, article_id=article.id, remote_id=remote_id)
    return {
        "message": "Article successfully synced to WeChat",
        "wechat_article_id": remote_id,
        "sync_time": sync_time.isoformat(),
    }


def get_sync_status(session, user_id: int, article_id: int) -> Dict[str, Any]:
    article, _ = _owned_article(session, user_id, article_id)
    logs = (
        session.query(SyncLog)
        .filter(SyncLog.article_id == article.id)
        .order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
        .all()
    )
    return {
        "current_status": {
            "wechat_sync_status": article.wechat_sync_status,
            "wechat_article_id": article.wechat_article_id,
            "wechat_sync_time": _iso(article.wechat_sync_time),
        },
        "sync_history": [sync_log_to_dict(row) for row in logs],
    }


def list_sync_logs(session, user_id: int, options: ListOptions) -> Tuple[List[Dict], Dict]:
    query = (
        session.query(SyncLog, Article.title)
        .join(Article, SyncLog.article_id == Article.id)
        .filter(Article.user_id == user_id)
    )
    total = query.order_by(None).count()
    rows = (
        query.order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
        .offset(options.offset)
        .limit(options.limit)
        .all()
    )
    items = []
    for row, title in rows:
        item = sync_log_to_dict(row)
        item["article_title"] = title
        items.append(item)
    return items, build_pagination(options.page, options.limit, total)


def get_account_info(session, user_id: int, publisher: WeChatPublisher) -> Dict[str, Any]:
    synced_count, last_sync = (
        session.query(func.count(Article.id), func.max(Article.wechat_sync_time))
        .filter(Article.user_id == user_id, Article.wechat_sync_status == SYNC_STATUS.SYNCED)
        .one()
    )
    info = publisher.account_info()
    info["articles_published"] = int(synced_count or 0)
    info["last_sync"] = _iso(last_sync)
    return info
