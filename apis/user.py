from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core import user_service
from .base import get_session, success_response

router = APIRouter(prefix="/users", tags=["用户管理"])


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = None
    avatar_url: Optional[str] = None


@router.post("/register", summary="用户注册", status_code=201)
def register(body: RegisterRequest, session: Session = Depends(get_session)):
    return success_response(user_service.register(session, body.username, body.email, body.password))


@router.post("/login", summary="用户登录")
def login(body: LoginRequest, session: Session = Depends(get_session)):
    return success_response(user_service.login(session, body.email, body.password))


@router.get("/profile", summary="获取个人资料")
def get_profile(
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return success_response(user_service.get_profile(session, current_user["user_id"]))


@router.put("/profile", summary="更新个人资料")
def update_profile(
    body: ProfileUpdateRequest,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    data = user_service.update_profile(
        session,
        current_user["user_id"],
        username=body.username,
        avatar_url=body.avatar_url,
    )
    return success_response(data)
