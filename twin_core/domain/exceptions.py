"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层做统一捕获与状态码映射（见 api/app.py 的 STATUS_BY_ERROR）。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 上游返回的 HTTP 状态码（若有），例如 OpenAI 返回的 401。
        extra: 其他补充字段（例如 session_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: Optional[int] = None, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


# ---- Provider 层（分类之前的原始错误） ----

class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 时抛出，http_status 为上游状态码。"""


# ---- 对外的错误分类 ----

class InvalidInput(BusinessError):
    """请求参数不合法（缺少 message、session_id 为空等）。"""


class InvalidRequest(BusinessError):
    """模型服务拒绝了请求格式。"""


class AuthFailure(BusinessError):
    """模型服务拒绝了凭据。"""


class RateLimited(BusinessError):
    """模型服务限流或配额耗尽，本系统不自动重试。"""


class EmptyCompletion(BusinessError):
    """模型没有返回任何内容。"""


class UpstreamError(BusinessError):
    """其他上游错误（包括超时），message 中包含上游信息。"""


class StoreFailure(BusinessError):
    """会话存储读写失败（"不存在" 除外）。"""


class AccessDenied(StoreFailure):
    """存储后端拒绝访问（例如 S3 AccessDenied）。"""
