from typing import Any, Dict, Generator, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from core.ai_service import TextGenerator
from core.db import Database
from core.query import ListOptions
from core.wechat_publisher import WeChatPublisher


def success_response(data: Any = None, message: str = None, pagination: Dict = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body


def error_response(message: str, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": message}
    if details:
        body["details"] = details
    return body


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_session(request: Request) -> Generator[Session, None, None]:
    """每个请求一个会话，请求结束时关闭。"""
    session = get_db(request).get_session()
    try:
        yield session
    finally:
        session.close()


def get_text_generator(request: Request) -> TextGenerator:
    return request.app.state.text_generator


def get_publisher(request: Request) -> WeChatPublisher:
    return request.app.state.publisher


def list_options(page: int, limit: int, sort_by: str = "", order: str = "DESC") -> ListOptions:
    return ListOptions(page=page, limit=limit, sort_by=sort_by, order=order)
