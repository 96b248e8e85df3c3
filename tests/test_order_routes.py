#!/usr/bin/env python3
"""
订单API接口测试

运行方式：
    pytest tests/test_order_routes.py -v
"""

import sqlite3

from core.payment_integration.payment_gateway import PaymentResult

ORDER_PAYLOAD = {
    "userId": "user-1",
    "shippingAddress": "上海市浦东新区",
    "paymentMethod": "Credit Card",
    "items": [
        {"medicationId": "1", "quantity": 2},
        {"medicationId": 4, "quantity": 1}
    ]
}


def _place_order(client, payload=None):
    response = client.post("/order", json=payload or ORDER_PAYLOAD)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestOrderRoutes:
    """订单接口测试套件"""

    def test_create_order(self, client):
        """测试：下单成功返回 201 与订单地址"""
        response = client.post("/order", json=ORDER_PAYLOAD)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert "timestamp" in body

        order = body["data"]
        assert order["totalAmount"] == 15.97
        assert order["status"] == "Processing"
        assert order["paymentTransactionId"] == "TXN-1"
        assert order["userId"] == "user-1"
        assert len(order["items"]) == 2
        assert order["items"][0]["medicationName"] == "Advil"
        assert response.headers["location"] == f"/order/{order['id']}"

    def test_create_order_empty_items(self, client):
        response = client.post("/order", json={**ORDER_PAYLOAD, "items": []})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_order_zero_quantity(self, client):
        payload = {**ORDER_PAYLOAD, "items": [{"medicationId": "1", "quantity": 0}]}
        assert client.post("/order", json=payload).status_code == 400

    def test_create_order_malformed_body(self, client):
        """测试：请求体格式错误按 400 处理"""
        response = client.post("/order", json={"items": "not-a-list"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_create_order_unknown_medication(self, client):
        payload = {**ORDER_PAYLOAD, "items": [{"medicationId": "999", "quantity": 1}]}
        response = client.post("/order", json=payload)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_create_order_payment_failure(self, client, payment_gateway):
        """测试：扣款失败返回 502，且用户订单列表为空"""
        payment_gateway.queue_charge(PaymentResult(False, message="卡被拒绝"))

        response = client.post("/order", json=ORDER_PAYLOAD)

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "PAYMENT_ERROR"

        listing = client.get("/order/user/user-1")
        assert listing.status_code == 200
        assert listing.json()["data"] == []

    def test_get_order(self, client):
        order = _place_order(client)

        response = client.get(f"/order/{order['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == order["id"]

    def test_get_order_missing(self, client):
        assert client.get("/order/does-not-exist").status_code == 404

    def test_get_order_of_other_user(self, client):
        """测试：携带他人身份查询时视为不存在"""
        order = _place_order(client)
        response = client.get(f"/order/{order['id']}", headers={"X-User-Id": "user-2"})
        assert response.status_code == 404

    def test_list_user_orders(self, client):
        first = _place_order(client)
        second = _place_order(client)
        _place_order(client, {**ORDER_PAYLOAD, "userId": "user-2"})

        response = client.get("/order/user/user-1")

        assert response.status_code == 200
        ids = [order["id"] for order in response.json()["data"]]
        assert set(ids) == {first["id"], second["id"]}

    def test_update_status_json_object(self, client):
        order = _place_order(client)

        response = client.put(f"/order/{order['id']}/status", json={"status": "Shipped"})

        assert response.status_code == 204
        updated = client.get(f"/order/{order['id']}").json()["data"]
        assert updated["status"] == "Shipped"
        assert updated["shippedDate"] is not None

    def test_update_status_json_string(self, client):
        order = _place_order(client)
        response = client.put(f"/order/{order['id']}/status", json="Shipped")
        assert response.status_code == 204

    def test_update_status_invalid_transition(self, client):
        """测试：非法状态转换返回 409"""
        order = _place_order(client)
        client.put(f"/order/{order['id']}/status", json={"status": "Shipped"})
        client.put(f"/order/{order['id']}/status", json={"status": "Delivered"})

        response = client.put(f"/order/{order['id']}/status", json={"status": "Processing"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_update_status_unknown_value(self, client):
        order = _place_order(client)
        response = client.put(f"/order/{order['id']}/status", json={"status": "Lost"})
        assert response.status_code == 400

    def test_update_status_missing_order(self, client):
        response = client.put("/order/missing/status", json={"status": "Shipped"})
        assert response.status_code == 404

    def test_cancel_order(self, client, payment_gateway):
        """测试：所有者取消订单返回 204 并退款"""
        order = _place_order(client)

        response = client.post(f"/order/{order['id']}/cancel", headers={"X-User-Id": "user-1"})

        assert response.status_code == 204
        assert client.get(f"/order/{order['id']}").json()["data"]["status"] == "Cancelled"
        assert len(payment_gateway.refunds) == 1

    def test_cancel_requires_identity(self, client):
        order = _place_order(client)
        response = client.post(f"/order/{order['id']}/cancel")
        assert response.status_code == 401

    def test_cancel_by_other_user(self, client):
        order = _place_order(client)
        response = client.post(f"/order/{order['id']}/cancel", headers={"X-User-Id": "user-2"})
        assert response.status_code == 404
        assert client.get(f"/order/{order['id']}").json()["data"]["status"] == "Processing"

    def test_cancel_twice(self, client):
        order = _place_order(client)
        headers = {"X-User-Id": "user-1"}
        assert client.post(f"/order/{order['id']}/cancel", headers=headers).status_code == 204
        assert client.post(f"/order/{order['id']}/cancel", headers=headers).status_code == 409


class TestMedicationRoutes:

    def test_list_medications(self, client):
        response = client.get("/medication")
        assert response.status_code == 200
        assert len(response.json()["data"]) == 5

    def test_get_medication(self, client):
        response = client.get("/medication/2")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Tylenol"

    def test_get_medication_missing(self, client):
        assert client.get("/medication/999").status_code == 404


class TestHealthRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["server_status"] == "running"
        assert data["database"]["medication_count"] == 5

    def test_health_database_unavailable(self, client, db, monkeypatch):
        def broken_stats():
            raise sqlite3.OperationalError("disk I/O error")
        monkeypatch.setattr(db, "get_database_stats", broken_stats)

        assert client.get("/health").status_code == 503
