#!/usr/bin/env python3
"""
调用方身份依赖
身份认证由网关/认证服务完成，这里只读取网关转发的用户ID
"""

import logging
from typing import Optional
from fastapi import Request

from api.middleware.exception_handler import unauthorized

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def _extract_user_id(request: Request) -> Optional[str]:
    """从请求头提取用户ID"""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    return user_id or None


async def get_current_user_id(request: Request) -> str:
    """
    必须携带身份的接口使用

    Raises:
        HTTPException 401: 未提供用户身份
    """
    user_id = _extract_user_id(request)
    if not user_id:
        logger.debug(f"缺少 {USER_ID_HEADER} 请求头: {request.url.path}")
        raise unauthorized("未提供用户身份")
    return user_id


async def get_optional_user_id(request: Request) -> Optional[str]:
    """身份可选的接口使用"""
    return _extract_user_id(request)
