from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core import article_service
from core.auth import get_current_user
from .base import get_session, list_options, success_response

router = APIRouter(prefix="/articles", tags=["文章管理"])


class ArticleCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    cover_image_url: Optional[str] = None
    article_type: Optional[str] = None
    style: Optional[str] = None
    structure: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None
    hot_topic_id: Optional[int] = None
    additional_requirements: Optional[Dict[str, Any]] = None


class ArticleUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    cover_image_url: Optional[str] = None
    article_type: Optional[str] = None
    style: Optional[str] = None
    structure: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None


@router.get("", summary="文章列表")
def list_articles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    sort_by: str = Query("created_at", alias="sortBy"),
    order: str = "DESC",
    session: Session = Depends(get_session),
):
    items, pagination = article_service.list_articles(
        session,
        list_options(page, limit, sort_by, order),
        status=status,
        user_id=user_id,
    )
    return success_response(items, pagination=pagination)


@router.get("/user/my-articles", summary="我的文章")
def list_my_articles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    items, pagination = article_service.list_user_articles(
        session,
        current_user["user_id"],
        list_options(page, limit),
        status=status,
    )
    return success_response(items, pagination=pagination)


@router.get("/{article_id}", summary="文章详情")
def get_article(article_id: int, session: Session = Depends(get_session)):
    return success_response(article_service.get_article(session, article_id))


@router.post("", summary="创建文章", status_code=201)
def create_article(
    body: ArticleCreate,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    data = article_service.create_article(session, current_user["user_id"], body.model_dump())
    return success_response(data)


@router.put("/{article_id}", summary="更新文章")
def update_article(
    article_id: int,
    body: ArticleUpdate,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    data = article_service.update_article(
        session,
        current_user["user_id"],
        article_id,
        body.model_dump(exclude_unset=True),
    )
    return success_response(data)


@router.delete("/{article_id}", summary="删除文章")
def delete_article(
    article_id: int,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    article_service.delete_article(session, current_user["user_id"], article_id)
    return success_response(message="Article deleted successfully")
