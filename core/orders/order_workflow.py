#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
订单工作流 - 订单状态的单一真相来源

核心原则：
1. 所有订单写操作必须通过此工作流
2. 下单 = 校验 -> 目录定价 -> 扣款 -> 一次性写入已支付订单；扣款失败不落库，写入失败则退款
3. 状态转换必须符合 VALID_TRANSITIONS，并以乐观锁防止并发下跳过校验
4. 取消订单时退款失败只记日志，不回滚取消
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from decimal import Decimal
from functools import partial
from typing import List, Optional, Union

from config.settings import PAYMENT_CONFIG, CATALOG_CONFIG
from core.catalog.medication_catalog import (
    MedicationCatalog,
    SQLiteMedicationCatalog,
    HttpMedicationCatalog
)
from core.database.connection import db_manager
from core.orders.models import (
    ErrorKind,
    OperationResult,
    Order,
    OrderItem,
    OrderItemRequest,
    OrderStatus,
    can_transition,
    parse_status,
    to_money,
    utc_now
)
from core.orders.order_store import OrderStore, SQLiteOrderStore
from core.payment_integration.payment_gateway import (
    PaymentGateway,
    PaymentResult,
    create_payment_gateway
)

logger = logging.getLogger(__name__)


class OrderWorkflow:
    """订单工作流引擎"""

    def __init__(
        self,
        store: OrderStore,
        catalog: MedicationCatalog,
        payment_gateway: PaymentGateway,
        payment_timeout: float = None,
        max_payment_workers: int = 8
    ):
        self.store = store
        self.catalog = catalog
        self.payment_gateway = payment_gateway
        self.payment_timeout = payment_timeout if payment_timeout is not None else PAYMENT_CONFIG["timeout"]
        self._payment_executor = ThreadPoolExecutor(
            max_workers=max_payment_workers,
            thread_name_prefix="payment"
        )

    # ------------------------------------------------------------------
    # 下单
    # ------------------------------------------------------------------

    def create_order(
        self,
        user_id: str,
        items: List[OrderItemRequest],
        shipping_address: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> OperationResult:
        """
        创建订单并扣款

        成功返回 Processing 状态的完整订单；
        任何失败都不会留下可见的订单记录。
        """
        error = self._validate_request(user_id, items)
        if error:
            return error

        # 步骤1-2: 目录定价，任一药品无法解析则整单拒绝
        priced_items = []
        for requested in items:
            entry = self.catalog.resolve(requested.medication_id)
            if entry is None:
                return OperationResult.fail(
                    ErrorKind.NOT_FOUND, f"药品 {requested.medication_id} 不存在"
                )
            if not entry.is_available:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, f"药品 {entry.name} 暂不可售"
                )
            priced_items.append(OrderItem(
                medication_id=entry.medication_id,
                medication_name=entry.name,
                quantity=requested.quantity,
                unit_price=to_money(entry.price)
            ))

        order = Order.create(
            user_id=user_id,
            items=priced_items,
            shipping_address=shipping_address,
            payment_method=payment_method
        )

        # 步骤3: 扣款在任何写事务之外进行，外部调用期间不持有数据库写锁
        payment = self._charge_with_timeout(order)
        if not payment.success:
            logger.warning(f"订单 {order.id} 扣款失败，未写入订单: {payment.message}")
            return OperationResult.fail(ErrorKind.PAYMENT, f"支付失败: {payment.message}")

        # 步骤4: 已扣款订单连同明细一次性写入，不存在可见的待支付中间态
        order.payment_transaction_id = payment.transaction_id
        order.status = OrderStatus.PROCESSING
        try:
            with self.store.transaction() as tx:
                self.store.create(tx, order)
        except Exception as e:
            logger.error(f"订单 {order.id} 扣款成功但写入失败: {type(e).__name__}: {e}")
            self._issue_refund(order.id, payment.transaction_id, order.total_amount)
            raise

        created = self.store.find_by_id(order.id)
        logger.info(
            f"✅ 订单 {order.id} 创建成功: 用户 {user_id}, "
            f"{len(priced_items)} 个药品, 金额 {created.total_amount}"
        )
        return OperationResult.ok(created)

    @staticmethod
    def _validate_request(user_id: str, items: List[OrderItemRequest]) -> Optional[OperationResult]:
        if not user_id or not str(user_id).strip():
            return OperationResult.fail(ErrorKind.VALIDATION, "缺少用户ID")

        if not items:
            return OperationResult.fail(ErrorKind.VALIDATION, "订单至少需要包含一个药品")

        for requested in items:
            if not requested.medication_id or not str(requested.medication_id).strip():
                return OperationResult.fail(ErrorKind.VALIDATION, "药品ID不能为空")
            quantity = requested.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                return OperationResult.fail(
                    ErrorKind.VALIDATION,
                    f"药品 {requested.medication_id} 的数量必须为正整数"
                )
        return None

    def _charge_with_timeout(self, order: Order) -> PaymentResult:
        """扣款，等待时间受 payment_timeout 约束，超时按失败处理"""
        future = self._payment_executor.submit(
            self.payment_gateway.charge,
            order.id,
            order.total_amount,
            order.payment_method
        )
        try:
            return future.result(timeout=self.payment_timeout)
        except FuturesTimeout:
            logger.warning(f"订单 {order.id} 扣款超时 ({self.payment_timeout}s)")
            # 尚未开始的扣款直接取消；已在执行的若最终成功，需要补偿退款
            future.cancel()
            future.add_done_callback(partial(self._compensate_late_charge, order.id, order.total_amount))
            return PaymentResult(False, message="支付超时")
        except Exception as e:
            logger.error(f"订单 {order.id} 扣款异常: {type(e).__name__}: {e}")
            return PaymentResult(False, message="支付网关异常")

    def _compensate_late_charge(self, order_id: str, amount: Decimal, future: Future):
        if future.cancelled() or future.exception() is not None:
            return
        late = future.result()
        if not late.success:
            return

        logger.warning(f"订单 {order_id} 下单已失败但扣款迟到成功 ({late.transaction_id})，发起补偿退款")
        self._issue_refund(order_id, late.transaction_id, amount)

    # ------------------------------------------------------------------
    # 状态流转
    # ------------------------------------------------------------------

    def update_status(self, order_id: str, new_status: Union[str, OrderStatus]) -> OperationResult:
        """
        更新订单状态

        进入 Shipped / Delivered 时记录发货/送达时间，只写一次；
        转为 Cancelled 时已扣款订单同样全额退款。
        """
        target = new_status if isinstance(new_status, OrderStatus) else parse_status(new_status)
        if target is None:
            return OperationResult.fail(ErrorKind.VALIDATION, f"无效的状态值: {new_status}")

        order = self.store.find_by_id(order_id)
        if not order:
            return OperationResult.fail(ErrorKind.NOT_FOUND, f"订单 {order_id} 不存在")

        if not can_transition(order.status, target):
            logger.warning(f"订单 {order_id} 非法状态转换: {order.status.value} -> {target.value}")
            return OperationResult.fail(
                ErrorKind.CONFLICT,
                f"不允许从 {order.status.value} 转换到 {target.value}"
            )

        now = utc_now()
        updated = self.store.update_status(
            order_id,
            expected_status=order.status,
            expected_version=order.version,
            new_status=target,
            shipped_date=now if target == OrderStatus.SHIPPED else None,
            delivered_date=now if target == OrderStatus.DELIVERED else None
        )
        if not updated:
            return OperationResult.fail(ErrorKind.CONFLICT, "订单已被并发修改，请刷新后重试")

        logger.info(f"✅ 订单 {order_id} 状态更新: {order.status.value} -> {target.value}")

        # 经状态接口取消已扣款订单，与 cancel_order 一样发起退款
        if target == OrderStatus.CANCELLED and order.payment_transaction_id:
            self._issue_refund(order_id, order.payment_transaction_id, order.total_amount)

        return OperationResult.ok(self.store.find_by_id(order_id))

    # ------------------------------------------------------------------
    # 取消
    # ------------------------------------------------------------------

    def cancel_order(self, order_id: str, requesting_user_id: str) -> OperationResult:
        """
        取消订单

        只有订单所有者可以取消，且只能取消 Pending / Processing 订单。
        已扣款的订单发起全额退款；退款失败不影响取消结果。
        """
        order = self.store.find_by_id(order_id)
        if not order:
            return OperationResult.fail(ErrorKind.NOT_FOUND, f"订单 {order_id} 不存在")

        if order.user_id != requesting_user_id:
            logger.warning(f"用户 {requesting_user_id} 尝试取消他人订单 {order_id}")
            return OperationResult.fail(ErrorKind.UNAUTHORIZED, "无权取消该订单")

        if not order.is_cancellable:
            logger.warning(f"订单 {order_id} 状态为 {order.status.value}，拒绝取消")
            return OperationResult.fail(
                ErrorKind.CONFLICT,
                f"当前状态为 {order.status.value} 的订单不可取消"
            )

        updated = self.store.update_status(
            order_id,
            expected_status=order.status,
            expected_version=order.version,
            new_status=OrderStatus.CANCELLED
        )
        if not updated:
            return OperationResult.fail(ErrorKind.CONFLICT, "订单已被并发修改，请刷新后重试")

        logger.info(f"✅ 订单 {order_id} 已取消 (原状态 {order.status.value})")

        if order.payment_transaction_id:
            self._issue_refund(order_id, order.payment_transaction_id, order.total_amount)

        return OperationResult.ok(self.store.find_by_id(order_id))

    def _issue_refund(self, order_id: str, transaction_id: str, amount: Decimal) -> bool:
        """退款失败只记录告警，不向调用方报错"""
        try:
            result = self.payment_gateway.refund(transaction_id, amount)
        except Exception as e:
            logger.warning(f"⚠️ 订单 {order_id} 退款异常 (流水号 {transaction_id}): {type(e).__name__}: {e}")
            return False

        if not result.success:
            logger.warning(f"⚠️ 订单 {order_id} 退款失败 (流水号 {transaction_id}): {result.message}")
            return False

        logger.info(f"订单 {order_id} 已退款 {amount}, 退款号 {result.transaction_id}")
        return True

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get_order(self, order_id: str, user_id: Optional[str] = None) -> OperationResult:
        """查询订单；指定 user_id 时他人订单视为不存在"""
        order = self.store.find_by_id(order_id)
        if not order or (user_id is not None and order.user_id != user_id):
            return OperationResult.fail(ErrorKind.NOT_FOUND, f"订单 {order_id} 不存在")
        return OperationResult.ok(order)

    def list_user_orders(self, user_id: str) -> List[Order]:
        return self.store.find_by_user(user_id)

    def shutdown(self):
        self._payment_executor.shutdown(wait=False)


def _create_catalog() -> MedicationCatalog:
    provider = CATALOG_CONFIG["provider"]
    if provider == "sqlite":
        return SQLiteMedicationCatalog(db_manager)
    elif provider == "http":
        return HttpMedicationCatalog()
    else:
        raise ValueError(f"不支持的药品目录来源: {provider}")


# 🔑 全局单例 - 确保整个服务使用同一个工作流实例
_workflow_instance = None


def get_order_workflow() -> OrderWorkflow:
    """获取订单工作流单例"""
    global _workflow_instance
    if _workflow_instance is None:
        _workflow_instance = OrderWorkflow(
            store=SQLiteOrderStore(db_manager),
            catalog=_create_catalog(),
            payment_gateway=create_payment_gateway()
        )
    return _workflow_instance


def shutdown_order_workflow():
    """释放单例持有的扣款线程池"""
    global _workflow_instance
    if _workflow_instance is not None:
        _workflow_instance.shutdown()
        _workflow_instance = None
