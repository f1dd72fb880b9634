"""
상품 저장소 (ProductRepository)

번들 여부 판별, 노출 가능 상품 필터, 관련상품 폴백 목록.
"""

import json
from typing import Dict, Iterable, List, Optional

from fbt.infrastructure.database.base_repository import BaseRepository
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


class ProductRepository(BaseRepository):
    """상품 조회/저장"""

    def is_bundle(self, product_id: str) -> bool:
        """번들 상품 여부 (미등록 상품은 번들 아님)"""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT is_bundle FROM products WHERE product_id = ?",
                (str(product_id),),
            ).fetchone()
            return bool(row and row["is_bundle"])
        finally:
            conn.close()

    def filter_bundles(self, product_ids: List[str]) -> List[str]:
        """번들 상품 제외 (입력 순서 유지)"""
        if not product_ids:
            return []
        bundles = self._flag_map(product_ids, "is_bundle")
        return [pid for pid in product_ids if not bundles.get(pid, False)]

    def filter_displayable(self, product_ids: List[str]) -> List[str]:
        """등록·활성 상품만 남김 (입력 순서 유지)"""
        if not product_ids:
            return []
        enabled = self._flag_map(product_ids, "enabled")
        return [pid for pid in product_ids if enabled.get(pid, False)]

    def get_related_product_ids(self, product_id: str) -> List[str]:
        """관련상품 목록 (폴백 추천 소스)"""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT related_product_ids FROM products WHERE product_id = ?",
                (str(product_id),),
            ).fetchone()
        finally:
            conn.close()

        if not row or not row["related_product_ids"]:
            return []
        related = json.loads(row["related_product_ids"])
        return [str(pid) for pid in related]

    def save_product(
        self,
        product_id: str,
        product_name: str = "",
        enabled: bool = True,
        is_bundle: bool = False,
        related_product_ids: Optional[Iterable[str]] = None,
    ) -> None:
        """상품 저장 (INSERT OR REPLACE)"""
        now = self._now()
        related = json.dumps([str(p) for p in related_product_ids]) if related_product_ids else None
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO products
                (product_id, product_name, enabled, is_bundle, related_product_ids,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(product_id) DO UPDATE SET
                    product_name = excluded.product_name,
                    enabled = excluded.enabled,
                    is_bundle = excluded.is_bundle,
                    related_product_ids = excluded.related_product_ids,
                    updated_at = excluded.updated_at
                """,
                (str(product_id), product_name, int(enabled), int(is_bundle),
                 related, now, now),
            )
            conn.commit()
        finally:
            conn.close()

    def _flag_map(self, product_ids: List[str], column: str) -> Dict[str, bool]:
        """{product_id: bool(column)} (미등록 상품은 키 없음)"""
        ids = [str(pid) for pid in dict.fromkeys(product_ids)]
        placeholders = ",".join("?" for _ in ids)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT product_id, {column} FROM products WHERE product_id IN ({placeholders})",
                ids,
            ).fetchall()
            return {row["product_id"]: bool(row[column]) for row in rows}
        finally:
            conn.close()
