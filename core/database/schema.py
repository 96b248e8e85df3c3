#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
订单服务表结构与演示数据
Order service schema bootstrap

金额统一以 TEXT 保存 Decimal 字符串，避免浮点误差。
"""

import sqlite3
import logging

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS medications (
        id TEXT PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        scientific_name VARCHAR(200),
        price TEXT NOT NULL,
        dosage_form VARCHAR(50),
        strength VARCHAR(50),
        requires_prescription INTEGER NOT NULL DEFAULT 0,
        is_available INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        user_id VARCHAR(100) NOT NULL,
        created_at TEXT NOT NULL,
        shipping_address VARCHAR(200),
        payment_method VARCHAR(100),
        total_amount TEXT NOT NULL,
        status VARCHAR(20) NOT NULL DEFAULT 'Pending'
            CHECK (status IN ('Pending', 'Processing', 'Shipped', 'Delivered', 'Cancelled')),
        payment_transaction_id VARCHAR(100),
        shipped_date TEXT,
        delivered_date TEXT,
        version INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_orders_user_created
        ON orders (user_id, created_at DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS order_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL REFERENCES orders (id) ON DELETE CASCADE,
        medication_id TEXT NOT NULL,
        medication_name VARCHAR(100),
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        unit_price TEXT NOT NULL,
        subtotal TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_order_items_order
        ON order_items (order_id)
    """,
]

# 演示药品目录 (id, name, scientific_name, price, dosage_form, strength, requires_prescription)
SEED_MEDICATIONS = [
    ("1", "Advil", "Ibuprofen", "5.99", "Tablet", "200mg", 0),
    ("2", "Tylenol", "Acetaminophen", "4.99", "Tablet", "500mg", 0),
    ("3", "Warfarin", "Warfarin", "8.99", "Tablet", "5mg", 1),
    ("4", "Aspirin", "Acetylsalicylic acid", "3.99", "Tablet", "81mg", 0),
    ("5", "Lipitor", "Atorvastatin", "12.99", "Tablet", "10mg", 1),
]


def init_schema(conn: sqlite3.Connection, seed_catalog: bool = True):
    """建表（幂等）。调用方负责事务边界。"""
    for statement in SCHEMA_STATEMENTS:
        conn.execute(statement)

    if seed_catalog:
        count = conn.execute("SELECT COUNT(*) FROM medications").fetchone()[0]
        if count == 0:
            conn.executemany("""
                INSERT INTO medications (
                    id, name, scientific_name, price, dosage_form, strength,
                    requires_prescription, is_available
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 1)
            """, SEED_MEDICATIONS)
            logger.info(f"✅ 已写入 {len(SEED_MEDICATIONS)} 条演示药品")
