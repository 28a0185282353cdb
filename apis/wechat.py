from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core import wechat_sync_service
from core.auth import get_current_user
from core.wechat_publisher import WeChatPublisher
from .base import get_publisher, get_session, list_options, success_response

router = APIRouter(prefix="/wechat", tags=["公众号同步"])


class SyncRequest(BaseModel):
    article_id: Optional[int] = None


@router.post("/sync", summary="同步文章到公众号")
def sync_article(
    body: SyncRequest,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
    publisher: WeChatPublisher = Depends(get_publisher),
):
    data = wechat_sync_service.publish_article(session, current_user["user_id"], body.article_id, publisher)
    return success_response(data)


@router.get("/sync-status/{article_id}", summary="同步状态")
def get_sync_status(
    article_id: int,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return success_response(wechat_sync_service.get_sync_status(session, current_user["user_id"], article_id))


@router.get("/sync-logs", summary="同步日志")
def list_sync_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    items, pagination = wechat_sync_service.list_sync_logs(
        session,
        current_user["user_id"],
        list_options(page, limit),
    )
    return success_response(items, pagination=pagination)


@router.get("/account-info", summary="公众号账号信息")
def get_account_info(
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
    publisher: WeChatPublisher = Depends(get_publisher),
):
    return success_response(wechat_sync_service.get_account_info(session, current_user["user_id"], publisher))
