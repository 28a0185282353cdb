import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from apis.ai import router as ai_router
from apis.article import router as article_router
from apis.base import error_response, get_db
from apis.hot_topic import router as hot_topic_router
from apis.user import router as user_router
from apis.wechat import router as wechat_router
from core.ai_service import TextGenerator, build_text_generator
from core.config import API_BASE, VERSION, cfg, is_production
from core.db import Database
from core.errors import AppError, InternalError
from core.events import E, log_event
from core.hot_topic_service import seed_sample_topics
from core.log import get_logger, get_trace_id, set_trace_id
from core.wechat_publisher import WeChatPublisher, build_publisher

logger = get_logger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """自定义 JSON 响应类，确保中文不被转义"""
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,  # 关键：不转义非ASCII字符
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


def _error(status_code: int, message: str, details: Optional[str] = None) -> UnicodeJSONResponse:
    if is_production():
        details = None
    return UnicodeJSONResponse(status_code=status_code, content=error_response(message, details))


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(x) for x in first.get("loc", []) if x not in ("body", "query", "path"))
    msg = str(first.get("msg") or "invalid value")
    return f"Invalid request: {loc} {msg}".strip() if loc else f"Invalid request: {msg}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log_event(logger, E.HTTP_ERROR, level="error", path=request.url.path,
                      status=exc.status_code, error=exc.details or exc.message)
        return _error(exc.status_code, exc.message, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail or "Request failed"))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("未处理异常 path=%s", request.url.path)
        response = _error(500, "Internal server error", str(exc))
        # 该处理器运行在最外层，响应不经过 add_custom_header
        trace_id = get_trace_id()
        if trace_id == "-":
            trace_id = set_trace_id(request.headers.get("X-Request-Id"))
        response.headers["X-Version"] = VERSION
        response.headers["X-Request-Id"] = trace_id
        return response


def create_app(
    db: Optional[Database] = None,
    text_generator: Optional[TextGenerator] = None,
    publisher: Optional[WeChatPublisher] = None,
) -> FastAPI:
    """创建应用；数据库与外部服务均可注入，便于测试替换。"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = app.state.db
        database.connect()
        database.create_tables()
        if cfg.get("db.seed_sample_data", True):
            with database.session_scope() as session:
                seed_sample_topics(session)
        log_event(logger, E.SYSTEM_STARTUP, version=VERSION, backend=database.backend)
        yield
        log_event(logger, E.SYSTEM_SHUTDOWN)
        database.dispose()

    app = FastAPI(
        title="WeChat Article Studio API",
        description="热点选题、AI 写作与公众号同步服务API文档",
        version=VERSION,
        docs_url=f"{API_BASE}/docs",
        redoc_url=f"{API_BASE}/redoc",
        openapi_url=f"{API_BASE}/openapi.json",
        swagger_ui_parameters={
            "persistAuthorization": True,
        },
        # 使用自定义 JSONResponse 确保中文不被转义为 \uXXXX
        default_response_class=UnicodeJSONResponse,
        lifespan=lifespan,
    )
    app.state.db = db or Database()
    app.state.text_generator = text_generator or build_text_generator(cfg.get("ai.provider", {}) or {})
    app.state.publisher = publisher or build_publisher(cfg.get("wechat", {}) or {})

    # CORS配置
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_custom_header(request: Request, call_next):
        trace_id = set_trace_id(request.headers.get("X-Request-Id"))
        response = await call_next(request)
        response.headers["X-Version"] = VERSION
        response.headers["X-Request-Id"] = trace_id
        return response

    register_exception_handlers(app)

    # 创建API路由分组
    api_router = APIRouter(prefix=API_BASE)
    api_router.include_router(user_router)
    api_router.include_router(hot_topic_router)
    api_router.include_router(article_router)
    api_router.include_router(ai_router)
    api_router.include_router(wechat_router)

    @api_router.get("/health", tags=["系统"], summary="健康检查")
    def health():
        return {
            "success": True,
            "message": "WeChat Article Studio API is running",
            "version": VERSION,
            "timestamp": datetime.now().isoformat(),
        }

    @api_router.get("/db-test", tags=["系统"], summary="数据库连通性检查")
    def db_test(request: Request):
        database = get_db(request)
        try:
            rows = database.query("SELECT CURRENT_TIMESTAMP AS db_time")
        except SQLAlchemyError as e:
            raise InternalError("Database connection failed", details=str(e))
        current_time = rows[0]["db_time"] if rows else None
        return {
            "success": True,
            "message": "Database connection successful",
            "backend": database.backend,
            "current_time": str(current_time) if current_time is not None else None,
        }

    app.include_router(api_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "web:app",
        host=str(cfg.get("server.host", "0.0.0.0")),
        port=int(cfg.get("server.port", 3000)),
        reload=bool(cfg.get("server.reload", False)),
    )
