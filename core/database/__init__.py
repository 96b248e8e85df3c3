"""
数据库核心模块
Database Core Module
"""

from .connection import (
    DatabaseConnectionManager,
    db_manager,
)

__all__ = [
    'DatabaseConnectionManager',
    'db_manager',
]
