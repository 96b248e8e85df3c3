"""
药品目录 - 订单定价所依赖的外部协作方

订单工作流只关心两件事：药品是否存在/可售，以及当前单价。
支持本地 SQLite 目录表与远程药品服务两种来源。
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Optional

import requests

from config.settings import CATALOG_CONFIG
from core.database.connection import DatabaseConnectionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """药品目录条目"""
    medication_id: str
    name: str
    price: Decimal
    is_available: bool = True
    scientific_name: Optional[str] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None
    requires_prescription: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.medication_id,
            "name": self.name,
            "scientificName": self.scientific_name,
            "price": float(self.price),
            "dosageForm": self.dosage_form,
            "strength": self.strength,
            "requiresPrescription": self.requires_prescription,
            "isAvailable": self.is_available
        }


class MedicationCatalog(ABC):
    """药品目录抽象基类"""

    @abstractmethod
    def resolve(self, medication_id: str) -> Optional[CatalogEntry]:
        """
        按 ID 查询药品

        Returns:
            目录条目；药品不存在时返回 None
        """
        pass


class SQLiteMedicationCatalog(MedicationCatalog):
    """本地目录表"""

    def __init__(self, db: DatabaseConnectionManager):
        self.db = db

    def resolve(self, medication_id: str) -> Optional[CatalogEntry]:
        with self.db.get_connection_context() as conn:
            row = conn.execute(
                "SELECT * FROM medications WHERE id = ?", (str(medication_id),)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def list_medications(self) -> List[CatalogEntry]:
        with self.db.get_connection_context() as conn:
            rows = conn.execute("SELECT * FROM medications ORDER BY name").fetchall()
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row) -> CatalogEntry:
        return CatalogEntry(
            medication_id=row["id"],
            name=row["name"],
            price=Decimal(row["price"]),
            is_available=bool(row["is_available"]),
            scientific_name=row["scientific_name"],
            dosage_form=row["dosage_form"],
            strength=row["strength"],
            requires_prescription=bool(row["requires_prescription"])
        )


class HttpMedicationCatalog(MedicationCatalog):
    """远程药品服务 GET /medication/{id}"""

    def __init__(self, base_url: str = None, timeout: float = None, session: requests.Session = None):
        self.base_url = (base_url or CATALOG_CONFIG["base_url"]).rstrip("/")
        self.timeout = timeout if timeout is not None else CATALOG_CONFIG["timeout"]
        self.session = session or requests.Session()

    def resolve(self, medication_id: str) -> Optional[CatalogEntry]:
        url = f"{self.base_url}/medication/{medication_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            # 目录服务不可达时按"无法解析"处理，由工作流拒绝整笔订单
            logger.warning(f"药品服务请求失败 {url}: {e}")
            return None

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning(f"药品服务返回异常状态 {response.status_code}: {url}")
            return None

        try:
            data = response.json()
            return CatalogEntry(
                medication_id=str(data.get("medicationId", medication_id)),
                name=data.get("brandName") or data.get("name") or str(medication_id),
                price=Decimal(str(data["price"])),
                is_available=bool(data.get("isAvailable", True)),
                scientific_name=data.get("scientificName"),
                dosage_form=data.get("dosageForm"),
                strength=data.get("strength"),
                requires_prescription=bool(data.get("requiresPrescription", False))
            )
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.warning(f"药品服务响应无法解析 {url}: {e}")
            return None
