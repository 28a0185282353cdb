"""
AI 文章生成

流程：校验 -> 额度检查 -> 构造提示词 -> 先落一条失败状态的日志并提交
-> 调用模型 -> 成功则回写日志并创建草稿文章，失败则把错误写入日志后抛出。
"""

import json
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from core.ai_service import TextGenerator, default_model
from core.article_service import article_to_dict, count_words, ensure_hot_topic, write_history
from core.db import atomic
from core.errors import UpstreamFailure, ValidationError
from core.events import E, log_event
from core.log import get_logger
from core.models.article import Article
from core.models.base import ARTICLE_STATUS
from core.models.generation_log import GenerationLog
from core.plan_service import ensure_generation_quota
from core.query import ListOptions, build_pagination
from core.user_service import get_user

logger = get_logger(__name__)

MAX_TOKENS_CEILING = 4000
DEFAULT_WORD_COUNT = 1000
GENERATION_FAILED_MESSAGE = "Failed to generate article"

STRUCTURE_CLAUSES = {
    "listicle": "Use a list format with clear headings and bullet points. ",
    "how_to": "Use a step-by-step format with clear instructions. ",
    "news": "Use a news article format with an engaging headline and informative content. ",
}
STANDARD_CLAUSE = "Use a standard article format with introduction, body, and conclusion. "
CLOSING_CLAUSE = (
    "Make the content engaging, informative, and suitable for a WeChat audience. "
    "Ensure the content is original and well-structured."
)

TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def build_generation_prompt(
    topic: str,
    article_type: str = "educational",
    style: str = "professional",
    structure: str = "standard",
    word_count: int = DEFAULT_WORD_COUNT,
    extras: Optional[Dict[str, Any]] = None,
) -> str:
    prompt = f'Write a {article_type} article about "{topic}" in a {style} style. '
    prompt += STRUCTURE_CLAUSES.get(structure, STANDARD_CLAUSE)
    prompt += f"Target approximately {word_count} words. "
    extras = extras or {}
    if extras.get("include_data"):
        prompt += "Include relevant data and statistics to support the content. "
    if extras.get("include_interaction"):
        prompt += "Include engaging questions or calls-to-action for reader interaction. "
    if extras.get("tone"):
        prompt += f"Maintain a {extras['tone']} tone throughout. "
    prompt += CLOSING_CLAUSE
    return prompt


def max_tokens_for(word_count: int) -> int:
    return min(int(word_count) * 2, MAX_TOKENS_CEILING)


def extract_title(content: str, topic: str) -> str:
    m = TITLE_PATTERN.search(content or "")
    if m:
        title = m.group(1).strip()
        if title:
            return title
    return f"Article about {topic}"


def _word_count_value(value) -> int:
    if value in (None, ""):
        return DEFAULT_WORD_COUNT
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError("word_count must be a positive integer")
    if count <= 0:
        raise ValidationError("word_count must be a positive integer")
    return count


def _fail_log(session, log: GenerationLog, message: str) -> None:
    with atomic(session):
        log.error_message = message
        session.add(log)


def generate_article(session, user_id: int, request: Dict[str, Any], generator: TextGenerator) -> Dict[str, Any]:
    topic = str(request.get("topic") or "").strip()
    if not topic:
        raise ValidationError("Topic is required for article generation")
    article_type = request.get("article_type") or "educational"
    style = request.get("style") or "professional"
    structure = request.get("structure") or "standard"
    word_count = _word_count_value(request.get("word_count"))
    extras = request.get("additional_requirements") or {}
    ai_model = str(request.get("ai_model") or default_model()).strip()

    user = get_user(session, user_id)
    hot_topic_id = ensure_hot_topic(session, request.get("hot_topic_id"))
    # 额度检查在写日志之前，被拒绝的请求不留日志
    ensure_generation_quota(session, user)

    prompt = build_generation_prompt(topic, article_type, style, structure, word_count, extras)
    log = GenerationLog(user_id=user_id, prompt=prompt, model_used=ai_model, success=False)
    with atomic(session):
        session.add(log)
    log_event(logger, E.AI_GENERATE_START, user_id=user_id, log_id=log.id, model=ai_model, words=word_count)

    started = time.time()
    try:
        result = generator.generate(prompt, model=ai_model, max_tokens=max_tokens_for(word_count))
    except UpstreamFailure as e:
        detail = e.details or e.message
        _fail_log(session, log, detail)
        log_event(logger, E.AI_GENERATE_FAIL, level="error", user_id=user_id, log_id=log.id, error=detail)
        raise UpstreamFailure(GENERATION_FAILED_MESSAGE, details=detail)
    except Exception as e:
        _fail_log(session, log, str(e))
        log_event(logger, E.AI_GENERATE_FAIL, level="error", user_id=user_id, log_id=log.id, error=str(e))
        raise UpstreamFailure(GENERATION_FAILED_MESSAGE, details=str(e)) from e

    content = str(result.get("content") or "")
    tokens_used = result.get("tokens_used")
    generation_time = int(round(time.time() - started))
    actual_word_count = count_words(content)

    with atomic(session):
        log.response = content
        log.tokens_used = tokens_used
        log.generation_time_seconds = generation_time
        log.success = True
        article = Article(
            user_id=user_id,
            hot_topic_id=hot_topic_id,
            title=extract_title(content, topic),
            content=content,
            article_type=article_type,
            style=style,
            structure=structure,
            word_count=actual_word_count,
            status=ARTICLE_STATUS.DRAFT,
            ai_prompt=prompt,
            ai_model=ai_model,
            generation_time_seconds=generation_time,
            additional_requirements=json.dumps(extras, ensure_ascii=False) if extras else None,
        )
        session.add(article)
        session.flush()
        log.article_id = article.id
        write_history(session, user_id, article.id, "created", {"source": "ai_generation", "model": ai_model})

    log_event(
        logger,
        E.AI_GENERATE_COMPLETE,
        user_id=user_id,
        log_id=log.id,
        article_id=article.id,
        tokens=tokens_used,
        cost=generation_time,
    )
    return {
        "article": article_to_dict(article),
        "generation_info": {
            "model_used": ai_model,
            "tokens_used": tokens_used,
            "generation_time_seconds": generation_time,
            "actual_word_count": actual_word_count,
            "log_id": log.id,
        },
    }


def list_generation_history(session, user_id: int, options: ListOptions) -> Tuple[List[Dict], Dict]:
    query = (
        session.query(GenerationLog, Article.title)
        .outerjoin(Article, GenerationLog.article_id == Article.id)
        .filter(GenerationLog.user_id == user_id)
    )
    total = query.order_by(None).count()
    rows = (
        query.order_by(GenerationLog.created_at.desc(), GenerationLog.id.desc())
        .offset(options.offset)
        .limit(options.limit)
        .all()
    )
    items = []
    for log, article_title in rows:
        items.append({
            "id": log.id,
            "article_id": log.article_id,
            "model_used": log.model_used,
            "tokens_used": log.tokens_used,
            "generation_time_seconds": log.generation_time_seconds,
            "success": bool(log.success),
            "error_message": log.error_message,
            "created_at": log.created_at.isoformat() if log.created_at else None,
            "article_title": article_title,
        })
    return items, build_pagination(options.page, options.limit, total)
