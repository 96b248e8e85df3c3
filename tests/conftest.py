"""
pytest配置文件 - 测试框架基础配置
"""
import os
import sys
import threading
import time
import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# 添加项目根目录到Python路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database.connection import DatabaseConnectionManager
from core.catalog.medication_catalog import SQLiteMedicationCatalog
from core.orders.models import OrderItemRequest
from core.orders.order_store import SQLiteOrderStore
from core.orders.order_workflow import OrderWorkflow
from core.payment_integration.payment_gateway import PaymentGateway, PaymentResult


class FakePaymentGateway(PaymentGateway):
    """可编排的支付网关：记录所有扣款/退款调用"""

    def __init__(self):
        self.charge_results = []
        self.refund_succeeds = True
        self.refund_raises = None
        self.latency = 0
        self.charges = []
        self.refunds = []
        self.charge_started = threading.Event()
        self.refunded = threading.Event()
        self._counter = 0
        self._lock = threading.Lock()

    def queue_charge(self, result: PaymentResult):
        self.charge_results.append(result)

    def charge(self, order_id, amount, payment_method=None):
        self.charge_started.set()
        if self.latency:
            time.sleep(self.latency)
        with self._lock:
            self.charges.append((order_id, amount, payment_method))
            if self.charge_results:
                return self.charge_results.pop(0)
            self._counter += 1
            return PaymentResult(True, f"TXN-{self._counter}", "扣款成功")

    def refund(self, transaction_id, amount):
        with self._lock:
            self.refunds.append((transaction_id, amount))
        self.refunded.set()
        if self.refund_raises:
            raise self.refund_raises
        if not self.refund_succeeds:
            return PaymentResult(False, message="退款通道不可用")
        return PaymentResult(True, f"REF-{uuid.uuid4()}", "退款成功")


@pytest.fixture
def db(tmp_path):
    """每个测试独立的数据库文件，已建表并写入演示药品"""
    manager = DatabaseConnectionManager(str(tmp_path / "orders.sqlite"))
    manager.initialize(seed_catalog=True)
    return manager


@pytest.fixture
def store(db):
    return SQLiteOrderStore(db)


@pytest.fixture
def catalog(db):
    return SQLiteMedicationCatalog(db)


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def workflow(store, catalog, payment_gateway):
    engine = OrderWorkflow(store, catalog, payment_gateway, payment_timeout=2)
    yield engine
    engine.shutdown()


@pytest.fixture
def set_availability(db):
    """修改目录中药品的可售状态"""
    def _set(medication_id, available):
        with db.transaction() as conn:
            conn.execute(
                "UPDATE medications SET is_available = ? WHERE id = ?",
                (1 if available else 0, medication_id)
            )
    return _set


@pytest.fixture
def count_orders(db):
    def _count():
        with db.get_connection_context() as conn:
            return conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0]
    return _count


@pytest.fixture
def client(db, catalog, workflow):
    """API客户端（依赖替换为测试数据库与假支付网关）"""
    from main import create_app
    from api.routes.health_routes import get_database_manager
    from api.routes.medication_routes import get_local_catalog
    from core.orders.order_workflow import get_order_workflow

    app = create_app()
    app.dependency_overrides[get_order_workflow] = lambda: workflow
    app.dependency_overrides[get_local_catalog] = lambda: catalog
    app.dependency_overrides[get_database_manager] = lambda: db
    return TestClient(app)


@pytest.fixture
def sample_items():
    """Advil x2 (5.99) + Aspirin x1 (3.99) = 15.97"""
    return [
        OrderItemRequest(medication_id="1", quantity=2),
        OrderItemRequest(medication_id="4", quantity=1)
    ]
