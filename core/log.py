"""
core/log.py: 日志配置

控制台输出走 colorlog，可选按 log.file 写滚动文件。每条记录带上当前请求的
request id（X-Request-Id），由 web.py 中间件在请求开始时设置。

    from core.log import get_logger
    logger = get_logger(__name__)
"""

import logging
import logging.handlers
import os
import re
import sys
import uuid
from contextvars import ContextVar
from typing import List, Optional

import colorlog

from core.config import cfg

_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")

# 客户端传入的 X-Request-Id 只接受这些字符，其余情况重新生成
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,16}$")

FORMAT = "%(asctime)s [%(levelname)-5s] [%(trace_id)s] %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# 第三方库默认只输出 WARNING 以上
QUIET_LOGGERS = ["urllib3", "multipart", "passlib"]

_HANDLER_MARKER = "_article_studio_handler"


def set_trace_id(tid: Optional[str] = None) -> str:
    """设置当前请求的 request id；缺失或不合法时生成 8 位短 id。"""
    tid = str(tid or "").strip()
    if not _REQUEST_ID_PATTERN.match(tid):
        tid = uuid.uuid4().hex[:8]
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> str:
    return _trace_id_var.get()


class _TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_var.get()
        return True


def log_level() -> int:
    name = str(cfg.get("log.level", "") or os.getenv("LOG_LEVEL", "") or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(level: int, log_file: str) -> List[logging.Handler]:
    trace_filter = _TraceIdFilter()

    console = colorlog.StreamHandler(stream=sys.stdout)
    console.setFormatter(
        colorlog.ColoredFormatter("%(log_color)s" + FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
    )
    handlers: List[logging.Handler] = [console]

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=int(cfg.get("log.max_bytes", 5 * 1024 * 1024)),
            backupCount=int(cfg.get("log.backup_count", 7)),
            encoding="utf-8",
        )
        rotating.setFormatter(logging.Formatter(FORMAT, datefmt=DATE_FORMAT))
        handlers.append(rotating)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(trace_filter)
        setattr(handler, _HANDLER_MARKER, True)
    return handlers


def configure_logging(level: Optional[int] = None, log_file: Optional[str] = None) -> None:
    """替换根日志器上本模块注册过的 handler，可重复调用（uvicorn --reload 会重复导入）。"""
    level = log_level() if level is None else level
    log_file = str(cfg.get("log.file", "") if log_file is None else log_file)

    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_MARKER, False)]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level)
    for handler in _build_handlers(level, log_file):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


configure_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
