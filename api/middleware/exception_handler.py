#!/usr/bin/env python3
"""
全局异常处理中间件
统一处理所有API异常，确保响应格式一致
"""

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback

from api.utils.api_response import APIResponse

logger = logging.getLogger(__name__)

# 映射状态码到错误代码
HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE"
}


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg', '')}" if location else error.get("msg", ""))
    return "; ".join(parts)


def setup_exception_handlers(app: FastAPI):
    """设置全局异常处理器"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """HTTP异常处理器 - 统一响应格式"""
        logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail}")

        return APIResponse.error(
            code=HTTP_ERROR_CODES.get(exc.status_code, "UNKNOWN_ERROR"),
            message=str(exc.detail),
            details=f"HTTP {exc.status_code}",
            status_code=exc.status_code
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """请求体校验失败统一按 400 处理"""
        details = _describe_validation_errors(exc)
        logger.warning(f"Request validation failed: {request.method} {request.url.path}: {details}")

        return APIResponse.error(
            code="VALIDATION_ERROR",
            message="提供的数据格式不正确",
            details=details,
            status_code=400
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """通用异常处理器 - 处理所有未捕获的异常"""
        logger.error(f"Unhandled Exception: {type(exc).__name__}: {exc}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        # 生产环境不暴露详细错误信息
        error_details = str(exc) if logger.isEnabledFor(logging.DEBUG) else "内部服务器错误"

        return APIResponse.error(
            code="INTERNAL_ERROR",
            message="服务器内部错误，请稍后重试",
            details=error_details,
            status_code=500
        )


# 便捷的异常创建函数
def create_http_exception(status_code: int, message: str, details: str = ""):
    """创建HTTP异常的便捷函数"""
    detail = message
    if details:
        detail = f"{message}: {details}"
    return HTTPException(status_code=status_code, detail=detail)


def unauthorized(message: str = "未授权访问"):
    """401 Unauthorized"""
    return create_http_exception(401, message)
