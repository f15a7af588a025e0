"""HTTP 层（FastAPI）。

路由：GET / 、GET /health 、POST /chat 、GET /conversation/{session_id}。
错误到状态码的映射只在这里做（STATUS_BY_ERROR）。
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from twin_core.api import service
from twin_core.config.settings import settings
from twin_core.domain.exceptions import (
    AccessDenied,
    AuthFailure,
    BusinessError,
    InvalidInput,
    InvalidRequest,
    RateLimited,
)
from twin_core.infrastructure.logging.logger import logger


API_TITLE = "AI Digital Twin API (Powered by OpenAI)"
GENERIC_ERROR = "Internal server error"

# 未列出的 BusinessError 一律 500 且不回显细节
STATUS_BY_ERROR = (
    (InvalidInput, 400),
    (InvalidRequest, 400),
    (AuthFailure, 403),
    (AccessDenied, 403),
    (RateLimited, 500),
)
_EXPOSED_500 = (RateLimited,)


class ChatBody(BaseModel):
    message: Any = Field(default=None, description="用户消息")
    session_id: Optional[str] = Field(default=None, description="会话ID（可选）")


def status_for(exc: BusinessError) -> int:
    for err_type, status in STATUS_BY_ERROR:
        if isinstance(exc, err_type):
            return status
    return 500


def cors_headers(origin: Optional[str], allowed: List[str]) -> Dict[str, str]:
    if origin and origin in allowed:
        allow_origin = origin
    else:
        allow_origin = allowed[0] if allowed else "*"
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "*",
        "Access-Control-Max-Age": "300",
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    service.initialize()
    logger.info(
        "Server starting",
        extra={"extra": {"storage": settings.storage_label, "openai_model": settings.openai_model}},
    )
    yield


def create_app() -> FastAPI:
    app = FastAPI(title=API_TITLE, version="1.0.0", lifespan=lifespan)

    # 不在白名单的来源回落到第一个配置的来源（CORSMiddleware 会直接拒绝）
    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        headers = cors_headers(request.headers.get("origin"), settings.cors_origin_list)
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", extra={"extra": {"path": request.url.path}})
            return JSONResponse(status_code=500, content={"error": GENERIC_ERROR}, headers=headers)
        response.headers.update(headers)
        return response

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError):
        status = status_for(exc)
        if status >= 500:
            logger.error(
                "Request failed",
                extra={"extra": {"path": request.url.path, "code": exc.code, "error": exc.message}},
            )
        if status >= 500 and not isinstance(exc, _EXPOSED_500):
            return JSONResponse(status_code=status, content={"error": GENERIC_ERROR})
        return JSONResponse(status_code=status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        if any("message" in err.get("loc", ()) for err in exc.errors()):
            return JSONResponse(status_code=400, content={"error": "Message is required"})
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"extra": {"path": request.url.path}})
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    @app.get("/")
    def root() -> Dict[str, Any]:
        return {
            "message": API_TITLE,
            "memory_enabled": True,
            "storage": settings.storage_label,
            "ai_model": settings.openai_model,
        }

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "use_s3": settings.use_s3,
            "openai_model": settings.openai_model,
        }

    @app.post("/chat")
    def chat(body: ChatBody) -> Dict[str, Any]:
        return service.run_twin_chat(body.message, session_id=body.session_id)

    @app.get("/conversation/")
    def conversation_missing_id() -> Dict[str, Any]:
        raise InvalidInput(code="INVALID_INPUT", message="Session ID is required")

    @app.get("/conversation/{session_id}")
    def conversation(session_id: str) -> Dict[str, Any]:
        return service.get_conversation_messages(session_id)

    return app


app = create_app()
