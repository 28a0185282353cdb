from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core import generation_service
from core.ai_service import TextGenerator
from core.auth import get_current_user
from .base import get_session, get_text_generator, list_options, success_response

router = APIRouter(prefix="/ai", tags=["AI创作"])


class GenerationExtras(BaseModel):
    include_data: bool = False
    include_interaction: bool = False
    tone: Optional[str] = None


class GenerateRequest(BaseModel):
    topic: Optional[str] = None
    article_type: str = "educational"
    style: str = "professional"
    structure: str = "standard"
    word_count: int = Field(1000, ge=1)
    additional_requirements: Optional[GenerationExtras] = None
    ai_model: Optional[str] = None
    hot_topic_id: Optional[int] = None


@router.post("/generate", summary="AI 生成文章")
def generate_article(
    body: GenerateRequest,
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
    generator: TextGenerator = Depends(get_text_generator),
):
    data = generation_service.generate_article(
        session,
        current_user["user_id"],
        body.model_dump(exclude_none=True),
        generator,
    )
    return success_response(data)


@router.get("/history", summary="生成记录")
def list_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    items, pagination = generation_service.list_generation_history(
        session,
        current_user["user_id"],
        list_options(page, limit),
    )
    return success_response(items, pagination=pagination)
