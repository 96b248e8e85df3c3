#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
统一数据库连接管理模块
Unified Database Connection Manager

功能：
1. 确保所有数据库连接启用外键约束（订单明细随订单级联删除）
2. 显式事务：写操作一律 BEGIN IMMEDIATE，提交或整体回滚
3. 统一错误处理
"""

import sqlite3
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from config.settings import DATABASE_CONFIG
from core.database.schema import init_schema

logger = logging.getLogger(__name__)


class DatabaseConnectionManager:
    """数据库连接管理器"""

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[float] = None):
        self.db_path = db_path or DATABASE_CONFIG["path"]
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_CONFIG["busy_timeout"]
        self._connection_count = 0

    def get_connection(self) -> sqlite3.Connection:
        """
        获取数据库连接

        重要：
        - 每个连接都会自动启用外键约束
        - isolation_level=None，事务边界完全由调用方通过 transaction() 控制
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row

            # ⚠️ 关键：启用外键约束
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")  # 未提交的写入对其他连接不可见
            conn.execute("PRAGMA synchronous = NORMAL")

            self._connection_count += 1
            logger.debug(f"数据库连接已创建 (总计: {self._connection_count})")

            return conn

        except sqlite3.Error as e:
            logger.error(f"数据库连接失败: {e}")
            raise

    @contextmanager
    def get_connection_context(self) -> Iterator[sqlite3.Connection]:
        """
        只读连接上下文管理器

        使用方式:
        with db_manager.get_connection_context() as conn:
            conn.execute("SELECT ...")
        """
        conn = self.get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        写事务上下文管理器

        进入时立即获取写锁；块内任何异常都会整体回滚并继续抛出。
        """
        conn = self.get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except Exception as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.debug(f"事务回滚: {type(e).__name__}: {e}")
            raise
        finally:
            conn.close()

    def initialize(self, seed_catalog: Optional[bool] = None):
        """建表（幂等），按配置写入演示药品目录"""
        if seed_catalog is None:
            seed_catalog = DATABASE_CONFIG["seed_catalog"]
        with self.transaction() as conn:
            init_schema(conn, seed_catalog=seed_catalog)
        logger.info(f"数据库已初始化: {self.db_path}")

    def get_database_stats(self) -> dict:
        """获取数据库统计信息（健康检查使用）"""
        with self.get_connection_context() as conn:
            stats = {
                "foreign_keys_enabled": bool(conn.execute("PRAGMA foreign_keys").fetchone()[0]),
                "journal_mode": conn.execute("PRAGMA journal_mode").fetchone()[0],
                "order_count": conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0],
                "medication_count": conn.execute("SELECT COUNT(*) FROM medications").fetchone()[0],
            }
            return stats


# 全局数据库管理器实例
db_manager = DatabaseConnectionManager()
