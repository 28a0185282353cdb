"""测试公共工具：内存数据库、用户与假的外部服务。"""

from core.auth import hash_password, issue_token
from core.db import Database
from core.errors import UpstreamFailure
from core.models.user import User

PASSWORD = "secret123"
_PASSWORD_HASH = None

MARKDOWN_ARTICLE = (
    "# Remote Work Playbook\n\n"
    "Remote teams need clear rituals.\n\n"
    "## Tips\n"
    "- Write things down\n"
    "- Meet with purpose\n"
)


def make_database() -> Database:
    db = Database("sqlite://", fallback="")
    db.connect()
    db.create_tables()
    return db


def create_user(session, username="alice", email=None, daily_limit=5, monthly_limit=50) -> User:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(PASSWORD)
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=_PASSWORD_HASH,
        subscription_type="free",
        daily_article_limit=daily_limit,
        monthly_article_limit=monthly_limit,
    )
    session.add(user)
    session.commit()
    return user


def auth_header(user) -> dict:
    return {"Authorization": f"Bearer {issue_token(user)}"}


class FakeGenerator:
    def __init__(self, content=MARKDOWN_ARTICLE, error=None, tokens=321):
        self.content = content
        self.error = error
        self.tokens = tokens
        self.calls = []

    def generate(self, prompt, model="", max_tokens=1000):
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return {"content": self.content, "tokens_used": self.tokens, "model": model}


class FakePublisher:
    mode = "fake"

    def __init__(self, error=None, remote_id="remote_1"):
        self.error = error
        self.remote_id = remote_id
        self.calls = []

    def publish(self, article):
        self.calls.append(article)
        if self.error is not None:
            raise self.error
        return {"wechat_article_id": self.remote_id, "response": {"media_id": self.remote_id}}

    def account_info(self):
        return {"app_id": "wx12****89", "mode": self.mode, "account_status": "configured"}


def upstream_error(details="provider timeout"):
    return UpstreamFailure("Failed to generate article", details=details)
