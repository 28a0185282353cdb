"""
core/events.py: 结构化事件日志

提供统一的事件类型常量（E 类）和 log_event() 格式化方法。
所有关键操作均通过此模块记录，确保日志可 grep / 统计。

格式：event=xxx | key=val | key=val

用法：
    from core.log import get_logger
    from core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.WECHAT_SYNC_START, article_id=12, user_id=3)
    # 输出：event=wechat.sync.start | article_id=12 | user_id=3
"""

import logging
from typing import Any


class E:
    """结构化事件类型常量，按功能模块分组。"""

    # ── 认证 Auth ──────────────────────────────────────────────────────────────
    AUTH_REGISTER = "auth.register"
    AUTH_REGISTER_CONFLICT = "auth.register.conflict"
    AUTH_LOGIN_SUCCESS = "auth.login.success"
    AUTH_LOGIN_FAIL = "auth.login.fail"
    AUTH_TOKEN_INVALID = "auth.token.invalid"
    USER_PROFILE_UPDATE = "user.profile.update"

    # ── 热点 Hot Topic ─────────────────────────────────────────────────────────
    HOT_TOPIC_CREATE = "hot_topic.create"
    HOT_TOPIC_SEED = "hot_topic.seed"

    # ── 文章 Article ───────────────────────────────────────────────────────────
    ARTICLE_CREATE = "article.create"
    ARTICLE_UPDATE = "article.update"
    ARTICLE_DELETE = "article.delete"

    # ── AI 生成 Generate ───────────────────────────────────────────────────────
    AI_GENERATE_START = "ai.generate.start"
    AI_GENERATE_COMPLETE = "ai.generate.complete"
    AI_GENERATE_FAIL = "ai.generate.fail"
    AI_USAGE_EXCEED = "ai.usage.exceed"

    # ── 微信同步 WeChat ────────────────────────────────────────────────────────
    WECHAT_SYNC_START = "wechat.sync.start"
    WECHAT_SYNC_COMPLETE = "wechat.sync.complete"
    WECHAT_SYNC_FAIL = "wechat.sync.fail"
    WECHAT_SYNC_SKIP = "wechat.sync.skip"
    WECHAT_TOKEN_REFRESH = "wechat.token.refresh"

    # ── 系统 System ────────────────────────────────────────────────────────────
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_DB_INIT = "system.db_init"
    SYSTEM_DB_FALLBACK = "system.db_fallback"
    HTTP_ERROR = "http.error"


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "info",
    **fields: Any,
) -> None:
    """
    记录结构化事件日志，格式：event=xxx | key=val | key=val

    示例：
        log_event(logger, E.AI_GENERATE_FAIL, level="error",
                  log_id=7, reason="timeout")
        # → event=ai.generate.fail | log_id=7 | reason=timeout
    """
    parts = [f"event={event}"]
    for k, v in fields.items():
        sv = str(v) if not isinstance(v, str) else v
        # 截断超长字段，避免单行日志过大
        if len(sv) > 300:
            sv = sv[:297] + "..."
        parts.append(f"{k}={sv}")
    msg = " | ".join(parts)
    getattr(logger, level)(msg, stacklevel=2)
