#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
订单领域模型 - 订单聚合根、订单明细、状态机与操作结果
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Any, List, Optional

CENT = Decimal("0.01")


class OrderStatus(Enum):
    """订单状态"""
    PENDING = "Pending"          # 已创建，等待扣款
    PROCESSING = "Processing"    # 已扣款，待发货
    SHIPPED = "Shipped"          # 已发货
    DELIVERED = "Delivered"      # 已送达（终态）
    CANCELLED = "Cancelled"      # 已取消（终态）


# 🔑 状态转换规则 - 定义合法的状态流转路径
VALID_TRANSITIONS = {
    OrderStatus.PENDING: [
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED
    ],
    OrderStatus.PROCESSING: [
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED
    ],
    OrderStatus.SHIPPED: [
        OrderStatus.DELIVERED
    ],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: []
}

CANCELLABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """检查是否可以从当前状态转换到目标状态"""
    return target in VALID_TRANSITIONS.get(current, [])


def parse_status(value: str) -> Optional[OrderStatus]:
    """状态字符串转枚举，大小写不敏感；无法识别返回 None"""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    for status in OrderStatus:
        if status.value.lower() == normalized:
            return status
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: Any) -> Decimal:
    """统一金额精度：两位小数，四舍五入"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class OrderItem:
    """
    订单明细

    unit_price 为下单时从药品目录取得的价格，之后目录调价不影响历史订单。
    """
    medication_id: str
    quantity: int
    unit_price: Decimal
    medication_name: Optional[str] = None
    id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medicationId": self.medication_id,
            "medicationName": self.medication_name,
            "quantity": self.quantity,
            "unitPrice": float(self.unit_price),
            "subtotal": float(self.subtotal)
        }


@dataclass(frozen=True)
class OrderItemRequest:
    """下单请求中的一行：药品 + 数量"""
    medication_id: str
    quantity: int


@dataclass
class Order:
    """
    订单聚合根

    核心约束：
    1. 至少包含一条明细
    2. total_amount 恒等于各明细小计之和（派生值，不可直接修改）
    3. status 只能按 VALID_TRANSITIONS 前进
    4. payment_transaction_id 仅在扣款成功后设置，退款后保留作为审计记录
    """
    id: str
    user_id: str
    created_at: datetime
    items: List[OrderItem] = field(default_factory=list)
    shipping_address: Optional[str] = None
    payment_method: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_transaction_id: Optional[str] = None
    shipped_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    version: int = 0

    @classmethod
    def create(
        cls,
        user_id: str,
        items: List[OrderItem],
        shipping_address: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> "Order":
        """创建新的待支付订单"""
        if not items:
            raise ValueError("订单至少需要包含一个药品")
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            created_at=utc_now(),
            items=list(items),
            shipping_address=shipping_address,
            payment_method=payment_method
        )

    @property
    def total_amount(self) -> Decimal:
        return to_money(sum((item.subtotal for item in self.items), Decimal("0")))

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
            "shippingAddress": self.shipping_address,
            "paymentMethod": self.payment_method,
            "totalAmount": float(self.total_amount),
            "status": self.status.value,
            "paymentTransactionId": self.payment_transaction_id,
            "shippedDate": _iso(self.shipped_date),
            "deliveredDate": _iso(self.delivered_date),
            "items": [item.to_dict() for item in self.items]
        }


class ErrorKind(Enum):
    """业务错误类型"""
    VALIDATION = "VALIDATION_ERROR"      # 明细为空、数量非法、状态值非法
    NOT_FOUND = "NOT_FOUND"              # 药品/订单不存在
    CONFLICT = "CONFLICT"                # 非法状态转换、并发修改
    PAYMENT = "PAYMENT_ERROR"            # 扣款失败或超时
    UNAUTHORIZED = "UNAUTHORIZED"        # 非订单所有者操作


@dataclass(frozen=True)
class OrderError:
    kind: ErrorKind
    message: str


@dataclass
class OperationResult:
    """
    订单操作结果

    业务失败不抛异常，调用方根据 success / error.kind 分支处理。
    """
    success: bool
    order: Optional[Order] = None
    error: Optional[OrderError] = None

    @classmethod
    def ok(cls, order: Optional[Order] = None) -> "OperationResult":
        return cls(success=True, order=order)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, error=OrderError(kind, message))

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "order": self.order.to_dict() if self.order else None
            }
        return {
            "success": False,
            "error": {
                "code": self.error.kind.value,
                "message": self.error.message
            }
        }
