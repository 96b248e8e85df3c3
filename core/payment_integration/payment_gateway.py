"""
支付集成管理模块
支持模拟支付与远程支付服务（PayPal 通道）
"""
import time
import uuid
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests

from config.settings import PAYMENT_CONFIG

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Credit Card"


@dataclass(frozen=True)
class PaymentResult:
    """扣款/退款结果"""
    success: bool
    transaction_id: Optional[str] = None
    message: str = ""


class PaymentGateway(ABC):
    """支付网关抽象基类"""

    @abstractmethod
    def charge(self, order_id: str, amount: Decimal, payment_method: Optional[str] = None) -> PaymentResult:
        """
        为订单扣款

        Args:
            order_id: 订单ID
            amount: 扣款金额
            payment_method: 支付方式，缺省为信用卡

        Returns:
            成功时 transaction_id 为扣款流水号
        """
        pass

    @abstractmethod
    def refund(self, transaction_id: str, amount: Decimal) -> PaymentResult:
        """按原扣款流水号退款"""
        pass


class SimulatedPaymentGateway(PaymentGateway):
    """模拟支付网关（开发环境）"""

    def __init__(self, latency: float = None):
        self.latency = latency if latency is not None else PAYMENT_CONFIG["simulated_latency"]

    def charge(self, order_id: str, amount: Decimal, payment_method: Optional[str] = None) -> PaymentResult:
        # 模拟处理延迟
        if self.latency > 0:
            time.sleep(self.latency)

        if payment_method is None:
            payment_method = DEFAULT_PAYMENT_METHOD

        if amount <= 0:
            return PaymentResult(False, message="扣款失败：金额无效")

        if not payment_method.strip():
            return PaymentResult(False, message="扣款失败：缺少支付方式")

        transaction_id = str(uuid.uuid4())
        logger.info(f"模拟扣款成功: 订单 {order_id}, 金额 {amount}, 流水号 {transaction_id}")
        return PaymentResult(True, transaction_id, "扣款成功")

    def refund(self, transaction_id: str, amount: Decimal) -> PaymentResult:
        if self.latency > 0:
            time.sleep(self.latency)

        if not transaction_id or not transaction_id.strip():
            return PaymentResult(False, message="退款失败：流水号无效")

        if amount <= 0:
            return PaymentResult(False, message="退款失败：金额必须大于零")

        refund_id = f"REF-{uuid.uuid4()}"
        logger.info(f"模拟退款成功: 原流水号 {transaction_id}, 金额 {amount}, 退款号 {refund_id}")
        return PaymentResult(True, refund_id, "退款成功")


class HttpPaymentGateway(PaymentGateway):
    """远程支付服务：发起 -> 确认 两步扣款"""

    def __init__(self, base_url: str = None, timeout: float = None, session: requests.Session = None):
        self.base_url = (base_url or PAYMENT_CONFIG["base_url"]).rstrip("/")
        self.timeout = timeout if timeout is not None else PAYMENT_CONFIG["timeout"]
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> dict:
        response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json() if response.content else {}

    def charge(self, order_id: str, amount: Decimal, payment_method: Optional[str] = None) -> PaymentResult:
        try:
            initiated = self._post("/payment/paypal", {
                "orderId": order_id,
                "amount": float(amount)
            })
            transaction_id = initiated.get("transactionId")
            if not transaction_id:
                return PaymentResult(False, message="支付服务未返回流水号")

            confirmed = self._post("/payment/paypal/confirm", {"transactionId": transaction_id})
            if confirmed.get("paymentStatus") != "Completed":
                return PaymentResult(
                    False, transaction_id,
                    f"支付未完成: {confirmed.get('paymentStatus', '未知状态')}"
                )

            return PaymentResult(True, str(transaction_id), "扣款成功")

        except requests.Timeout:
            logger.warning(f"支付服务超时: 订单 {order_id}")
            return PaymentResult(False, message="支付服务超时")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"支付服务请求失败: 订单 {order_id}: {e}")
            return PaymentResult(False, message=f"支付服务请求失败: {e}")

    def refund(self, transaction_id: str, amount: Decimal) -> PaymentResult:
        try:
            result = self._post("/payment/refund", {
                "transactionId": transaction_id,
                "amount": float(amount)
            })
            return PaymentResult(True, result.get("refundId"), "退款成功")
        except requests.Timeout:
            logger.warning(f"支付服务退款超时: 流水号 {transaction_id}")
            return PaymentResult(False, message="支付服务超时")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"支付服务退款失败: 流水号 {transaction_id}: {e}")
            return PaymentResult(False, message=f"支付服务请求失败: {e}")


def create_payment_gateway(provider: str = None) -> PaymentGateway:
    """按配置创建支付网关"""
    provider = provider or PAYMENT_CONFIG["provider"]
    if provider == "simulated":
        return SimulatedPaymentGateway()
    elif provider == "http":
        return HttpPaymentGateway()
    else:
        raise ValueError(f"不支持的支付通道: {provider}")
