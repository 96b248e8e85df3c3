#!/usr/bin/env python3
"""
药品目录测试

运行方式：
    pytest tests/test_medication_catalog.py -v
"""

from decimal import Decimal
from unittest.mock import MagicMock

import requests

from core.catalog.medication_catalog import HttpMedicationCatalog


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestMedicationCatalog:
    """本地目录表测试"""

    def test_resolve_seeded_medication(self, catalog):
        entry = catalog.resolve("1")
        assert entry.name == "Advil"
        assert entry.price == Decimal("5.99")
        assert entry.is_available

    def test_resolve_accepts_numeric_id(self, catalog):
        assert catalog.resolve(4).name == "Aspirin"

    def test_resolve_missing(self, catalog):
        assert catalog.resolve("999") is None

    def test_list_medications_sorted_by_name(self, catalog):
        names = [entry.name for entry in catalog.list_medications()]
        assert names == ["Advil", "Aspirin", "Lipitor", "Tylenol", "Warfarin"]

    def test_unavailable_flag(self, catalog, set_availability):
        set_availability("5", False)
        assert not catalog.resolve("5").is_available

    def test_to_dict(self, catalog):
        data = catalog.resolve("3").to_dict()
        assert data["id"] == "3"
        assert data["price"] == 8.99
        assert data["requiresPrescription"] is True


class TestHttpMedicationCatalog:
    """远程药品服务测试（HTTP 会话以 mock 替代）"""

    def test_resolve(self):
        session = MagicMock()
        session.get.return_value = _response({
            "medicationId": 7,
            "brandName": "Zyrtec",
            "scientificName": "Cetirizine",
            "price": 9.49,
            "isAvailable": True
        })
        catalog = HttpMedicationCatalog("http://medications.local/", timeout=2, session=session)

        entry = catalog.resolve("7")

        assert entry.medication_id == "7"
        assert entry.name == "Zyrtec"
        assert entry.price == Decimal("9.49")
        session.get.assert_called_once_with("http://medications.local/medication/7", timeout=2)

    def test_resolve_not_found(self):
        session = MagicMock()
        session.get.return_value = _response(status_code=404)
        assert HttpMedicationCatalog("http://medications.local", session=session).resolve("7") is None

    def test_resolve_server_error(self):
        session = MagicMock()
        session.get.return_value = _response(status_code=500)
        assert HttpMedicationCatalog("http://medications.local", session=session).resolve("7") is None

    def test_resolve_unreachable(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        assert HttpMedicationCatalog("http://medications.local", session=session).resolve("7") is None

    def test_resolve_malformed_price(self):
        session = MagicMock()
        session.get.return_value = _response({"medicationId": "7", "name": "Zyrtec", "price": "cheap"})
        assert HttpMedicationCatalog("http://medications.local", session=session).resolve("7") is None

    def test_resolve_missing_price(self):
        session = MagicMock()
        session.get.return_value = _response({"medicationId": "7", "name": "Zyrtec"})
        assert HttpMedicationCatalog("http://medications.local", session=session).resolve("7") is None
