#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
订单存储 - 持久化端口与 SQLite 实现

订单工作流是订单记录的唯一写入方，所有写操作都经由此处。
状态更新采用乐观并发控制：UPDATE 同时比对 status 与 version，
失败即说明订单已被并发修改，由调用方决定如何报告。
"""

import sqlite3
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional

from core.database.connection import DatabaseConnectionManager
from core.orders.models import Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


class OrderStore(ABC):
    """订单持久化端口"""

    @abstractmethod
    def transaction(self):
        """
        开启一个写事务，返回上下文管理器

        块内写入要么全部提交，要么全部回滚；提交前对其他读者不可见。
        """
        pass

    @abstractmethod
    def create(self, tx, order: Order):
        """在事务内写入订单及全部明细（含状态与扣款流水号）"""
        pass

    @abstractmethod
    def find_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    def find_by_user(self, user_id: str) -> List[Order]:
        """按下单时间倒序返回用户的全部订单"""
        pass

    @abstractmethod
    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        expected_version: int,
        new_status: OrderStatus,
        shipped_date: Optional[datetime] = None,
        delivered_date: Optional[datetime] = None
    ) -> bool:
        """
        比较并交换订单状态

        仅当当前 status 与 version 都与预期一致时才更新；
        shipped_date / delivered_date 只在原值为空时写入。

        Returns:
            是否更新成功
        """
        pass


class SQLiteOrderStore(OrderStore):
    """基于 SQLite 的订单存储"""

    def __init__(self, db: DatabaseConnectionManager):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self.db.transaction() as conn:
            yield conn

    def create(self, tx: sqlite3.Connection, order: Order):
        tx.execute("""
            INSERT INTO orders (
                id, user_id, created_at, shipping_address, payment_method,
                total_amount, status, payment_transaction_id, version
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            order.id, order.user_id, order.created_at.isoformat(),
            order.shipping_address, order.payment_method,
            str(order.total_amount), order.status.value,
            order.payment_transaction_id, order.version
        ))

        tx.executemany("""
            INSERT INTO order_items (
                order_id, medication_id, medication_name, quantity, unit_price, subtotal
            ) VALUES (?, ?, ?, ?, ?, ?)
        """, [
            (order.id, item.medication_id, item.medication_name, item.quantity,
             str(item.unit_price), str(item.subtotal))
            for item in order.items
        ])

    def find_by_id(self, order_id: str) -> Optional[Order]:
        with self.db.get_connection_context() as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            if not row:
                return None
            items = conn.execute(
                "SELECT * FROM order_items WHERE order_id = ? ORDER BY id", (order_id,)
            ).fetchall()
            return self._row_to_order(row, items)

    def find_by_user(self, user_id: str) -> List[Order]:
        with self.db.get_connection_context() as conn:
            rows = conn.execute("""
                SELECT * FROM orders
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
            """, (user_id,)).fetchall()
            if not rows:
                return []

            placeholders = ",".join("?" for _ in rows)
            item_rows = conn.execute(
                f"SELECT * FROM order_items WHERE order_id IN ({placeholders}) ORDER BY id",
                [row["id"] for row in rows]
            ).fetchall()

        items_by_order = {}
        for item_row in item_rows:
            items_by_order.setdefault(item_row["order_id"], []).append(item_row)

        return [self._row_to_order(row, items_by_order.get(row["id"], [])) for row in rows]

    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        expected_version: int,
        new_status: OrderStatus,
        shipped_date: Optional[datetime] = None,
        delivered_date: Optional[datetime] = None
    ) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                UPDATE orders
                SET status = ?,
                    version = version + 1,
                    shipped_date = COALESCE(shipped_date, ?),
                    delivered_date = COALESCE(delivered_date, ?)
                WHERE id = ? AND status = ? AND version = ?
            """, (
                new_status.value,
                shipped_date.isoformat() if shipped_date else None,
                delivered_date.isoformat() if delivered_date else None,
                order_id,
                expected_status.value,
                expected_version
            ))
            updated = cursor.rowcount == 1

        if not updated:
            logger.debug(f"订单 {order_id} 状态比较失败: 预期 {expected_status.value}@v{expected_version}")
        return updated

    @staticmethod
    def _row_to_order(row: sqlite3.Row, item_rows) -> Order:
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            items=[
                OrderItem(
                    id=item["id"],
                    medication_id=item["medication_id"],
                    medication_name=item["medication_name"],
                    quantity=item["quantity"],
                    unit_price=Decimal(item["unit_price"])
                )
                for item in item_rows
            ],
            shipping_address=row["shipping_address"],
            payment_method=row["payment_method"],
            status=OrderStatus(row["status"]),
            payment_transaction_id=row["payment_transaction_id"],
            shipped_date=datetime.fromisoformat(row["shipped_date"]) if row["shipped_date"] else None,
            delivered_date=datetime.fromisoformat(row["delivered_date"]) if row["delivered_date"] else None,
            version=row["version"]
        )
