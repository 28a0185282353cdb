from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core import hot_topic_service
from .base import get_session, list_options, success_response

router = APIRouter(prefix="/hot-topics", tags=["热点话题"])


class HotTopicCreate(BaseModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None
    source: Optional[str] = None
    hotness_score: Optional[int] = 0
    trend_data: Optional[Any] = None
    related_keywords: Optional[str] = None


@router.get("", summary="热点列表")
def list_hot_topics(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    sort_by: str = Query("hotness_score", alias="sortBy"),
    order: str = "DESC",
    session: Session = Depends(get_session),
):
    items, pagination = hot_topic_service.list_hot_topics(
        session,
        list_options(page, limit, sort_by, order),
        category=category,
    )
    return success_response(items, pagination=pagination)


# 固定路径需要在 /{topic_id} 之前注册
@router.get("/trending", summary="热门趋势")
def list_trending(limit: int = Query(10, ge=1, le=100), session: Session = Depends(get_session)):
    return success_response(hot_topic_service.list_trending(session, limit=limit))


@router.get("/category/{category}", summary="按分类获取热点")
def list_by_category(
    category: str,
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
):
    return success_response(hot_topic_service.list_by_category(session, category, limit=limit))


@router.get("/{topic_id}", summary="热点详情")
def get_hot_topic(topic_id: int, session: Session = Depends(get_session)):
    return success_response(hot_topic_service.get_hot_topic(session, topic_id))


@router.post("", summary="创建热点", status_code=201)
def create_hot_topic(body: HotTopicCreate, session: Session = Depends(get_session)):
    return success_response(hot_topic_service.create_hot_topic(session, body.model_dump()))
