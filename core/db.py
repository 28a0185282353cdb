"""
数据库连接与会话管理

Database 在进程启动时显式创建并注入应用（app.state.db），后端在
connect() 中一次性确定：配置的数据库不可达时回落到本地 SQLite。
"""

import os
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, List, Optional, TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchModuleError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import cfg
from core.events import E, log_event
from core.log import get_logger
from core.models import Base

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_FALLBACK_URL = "sqlite:///./wechat_article.db"


def database_url() -> str:
    return str(
        cfg.get("db.url", "")
        or os.getenv("DATABASE_URL", "")
        or DEFAULT_FALLBACK_URL
    ).strip()


def fallback_url() -> str:
    return str(cfg.get("db.fallback_url", "") or DEFAULT_FALLBACK_URL).strip()


def _is_sqlite(url: str) -> bool:
    return str(url or "").startswith("sqlite")


def _build_engine(url: str, echo: bool = False) -> Engine:
    if _is_sqlite(url):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        # 内存库需要在所有连接间共享同一个连接
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=int(cfg.get("db.pool_size", 20) or 20),
        pool_timeout=int(cfg.get("db.pool_timeout", 30) or 30),
    )


@contextmanager
def atomic(session: Session) -> Generator[Session, None, None]:
    """在已有会话上执行一个工作单元：成功提交，失败回滚并抛出。"""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


class Database:
    def __init__(self, url: str = "", fallback: Optional[str] = None, echo: bool = False):
        self.url = url or database_url()
        self.fallback = fallback if fallback is not None else fallback_url()
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._resolved = False

    @property
    def engine(self) -> Engine:
        return self._ensure_engine()

    def _ensure_engine(self) -> Engine:
        if self._engine is None:
            self._engine = _build_engine(self.url, echo=self.echo)
            self._session_factory = sessionmaker(
                bind=self._engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._engine

    @property
    def backend(self) -> str:
        return self.engine.dialect.name

    def connect(self) -> "Database":
        """确定存储后端（只执行一次）。驱动缺失或连接失败都回落到 fallback。"""
        if self._resolved:
            return self
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (OperationalError, NoSuchModuleError, ImportError) as e:
            if _is_sqlite(self.url) or not self.fallback:
                raise
            log_event(
                logger,
                E.SYSTEM_DB_FALLBACK,
                level="warning",
                backend=self.url.split(":", 1)[0],
                fallback=self.fallback,
                reason=str(e).splitlines()[0] if str(e) else type(e).__name__,
            )
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self.url = self.fallback
        self._resolved = True
        log_event(logger, E.SYSTEM_DB_INIT, backend=self.backend)
        return self

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        self._ensure_engine()
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """事务作用域：成功提交，异常回滚并抛出，始终关闭会话。"""
        session = self.get_session()
        try:
            with atomic(session):
                yield session
        finally:
            session.close()

    def transaction(self, fn: Callable[[Session], T]) -> T:
        with self.session_scope() as session:
            return fn(session)

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """执行参数化 SQL（:name 占位），返回字典行。"""
        with self.engine.begin() as conn:
            result = conn.execute(text(sql), params or {})
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
