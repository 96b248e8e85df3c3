"""
订单核心模块
Order Core Module
"""

from .models import (
    Order,
    OrderItem,
    OrderItemRequest,
    OrderStatus,
    ErrorKind,
    OrderError,
    OperationResult,
    VALID_TRANSITIONS,
    can_transition,
)

__all__ = [
    'Order',
    'OrderItem',
    'OrderItemRequest',
    'OrderStatus',
    'ErrorKind',
    'OrderError',
    'OperationResult',
    'VALID_TRANSITIONS',
    'can_transition',
]
