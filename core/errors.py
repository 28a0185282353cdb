"""
业务异常定义

服务层抛出 AppError 子类，由 web.py 中注册的异常处理器统一转换为
{"success": false, "error": ...} 响应。
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = "", details: Optional[str] = None):
        self.message = str(message or self.default_message)
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Access token required"


class InvalidToken(Unauthorized):
    # 凭证存在但无效或已过期
    status_code = 403
    default_message = "Invalid or expired token"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists"


class AlreadySynced(AppError):
    status_code = 400
    default_message = "Article already synced to WeChat"


class RateLimited(AppError):
    status_code = 429
    default_message = "Rate limit exceeded"


class UpstreamFailure(AppError):
    """外部服务（模型 / 微信）失败；details 仅在非生产环境返回给调用方。"""

    status_code = 500
    default_message = "Upstream service failure"


class InternalError(AppError):
    status_code = 500
