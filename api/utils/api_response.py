#!/usr/bin/env python3
"""
API响应格式统一辅助类
"""

from typing import Any, Dict, Optional
from datetime import datetime, timezone
from fastapi.responses import JSONResponse

from core.orders.models import ErrorKind, OperationResult

# 业务错误类型 -> HTTP 状态码
ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PAYMENT: 502,
    # 不向非所有者暴露订单是否存在
    ErrorKind.UNAUTHORIZED: 404,
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class APIResponse:
    """统一API响应格式辅助类"""

    @staticmethod
    def success(
        data: Any = None,
        message: str = "",
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> JSONResponse:
        """成功响应"""
        response_data = {
            "success": True,
            "data": data,
            "timestamp": utc_timestamp()
        }
        if message:
            response_data["message"] = message

        return JSONResponse(
            status_code=status_code,
            content=response_data,
            headers=headers
        )

    @staticmethod
    def error(code: str, message: str, details: str = "", status_code: int = 400) -> JSONResponse:
        """错误响应"""
        response_data = {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
            "timestamp": utc_timestamp()
        }
        if details:
            response_data["error"]["details"] = details

        return JSONResponse(
            status_code=status_code,
            content=response_data
        )

    @staticmethod
    def from_failure(
        result: OperationResult,
        status_overrides: Optional[Dict[ErrorKind, int]] = None
    ) -> JSONResponse:
        """
        业务失败结果 -> 错误响应

        status_overrides 用于个别路由调整映射，例如下单时引用的药品不存在属于请求错误(400)。
        """
        kind = result.error.kind
        status_code = (status_overrides or {}).get(kind, ERROR_STATUS_CODES.get(kind, 400))
        return APIResponse.error(
            code=kind.value,
            message=result.error.message,
            status_code=status_code
        )

    @staticmethod
    def not_found(resource: str = "资源") -> JSONResponse:
        """404 响应"""
        return APIResponse.error(
            code="NOT_FOUND",
            message=f"{resource}不存在",
            status_code=404
        )
