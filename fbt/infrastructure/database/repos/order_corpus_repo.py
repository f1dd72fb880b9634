"""
주문 코퍼스 저장소 (OrderCorpusRepository)

orders / order_lines 조회 전용.
번들 구성품 라인(bundle_id 존재)은 조회 단계에서 제외한다.
"""

from datetime import datetime
from typing import Dict, List, Optional

from fbt.domain.models import OrderRecord
from fbt.infrastructure.database.base_repository import BaseRepository
from fbt.settings.constants import COMPLETED_ORDER_STATES
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


class OrderCorpusRepository(BaseRepository):
    """분석용 주문 조회"""

    def fetch_orders(self, cutoff: datetime, channel_id: str) -> List[OrderRecord]:
        """기간 내 완료 주문 조회

        Args:
            cutoff: 이 시각 이후 주문만 (주문 시각 >= cutoff).
                주문 시각이 없으면 updated_at을 쓴다.
            channel_id: 채널 ID

        Returns:
            최신 주문부터 정렬된 OrderRecord 목록.
            번들 구성품 라인만 있는 주문도 포함된다 (product_ids 비어 있음).
        """
        placeholders = ",".join("?" for _ in COMPLETED_ORDER_STATES)
        cutoff_text = self._to_local_naive(cutoff).isoformat()
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                f"""
                SELECT o.order_id,
                       COALESCE(o.order_placed_at, o.updated_at) AS placed_at,
                       COALESCE(o.total_with_tax, o.total) AS order_total,
                       ol.product_id
                FROM orders o
                LEFT JOIN order_lines ol
                       ON ol.order_id = o.order_id
                      AND ol.bundle_id IS NULL
                WHERE o.channel_id = ?
                  AND COALESCE(o.order_placed_at, o.updated_at) >= ?
                  AND o.state IN ({placeholders})
                ORDER BY placed_at DESC, o.order_id, ol.id
                """,
                (channel_id, cutoff_text) + tuple(COMPLETED_ORDER_STATES),
            )

            grouped: Dict[str, Dict] = {}
            for row in cursor:
                order = grouped.get(row["order_id"])
                if order is None:
                    order = {
                        "placed_at": self._to_datetime(row["placed_at"]),
                        "total": row["order_total"],
                        "product_ids": [],
                    }
                    grouped[row["order_id"]] = order
                if row["product_id"] is not None:
                    order["product_ids"].append(str(row["product_id"]))

            return [
                OrderRecord(
                    order_id=order_id,
                    placed_at=data["placed_at"],
                    total=data["total"],
                    product_ids=data["product_ids"],
                )
                for order_id, data in grouped.items()
            ]
        finally:
            conn.close()

    def count_product_lines(self, product_id: str, channel_id: Optional[str] = None) -> int:
        """상품이 포함된 주문 라인 수 (번들 구성품 제외, 기간 제한 없음)

        lift의 support 분자로 사용된다.
        """
        conn = self._get_conn()
        try:
            if channel_id is None:
                row = conn.execute(
                    """
                    SELECT COUNT(*) FROM order_lines
                    WHERE product_id = ? AND bundle_id IS NULL
                    """,
                    (product_id,),
                ).fetchone()
            else:
                row = conn.execute(
                    """
                    SELECT COUNT(*)
                    FROM order_lines ol
                    JOIN orders o ON o.order_id = ol.order_id
                    WHERE ol.product_id = ?
                      AND ol.bundle_id IS NULL
                      AND o.channel_id = ?
                    """,
                    (product_id, channel_id),
                ).fetchone()
            return self._to_int(row[0])
        finally:
            conn.close()

    def save_order(
        self,
        order_id: str,
        channel_id: str,
        placed_at: Optional[datetime],
        lines: List[Dict],
        total: Optional[int] = None,
        total_with_tax: Optional[int] = None,
        state: str = "Delivered",
    ) -> None:
        """주문 + 라인 저장 (시드/가져오기용)

        Args:
            placed_at: 주문 시각 (오프셋이 있으면 로컬 naive 시각으로 저장, None 허용)
            lines: [{product_id, variant_id?, quantity?, bundle_id?}, ...]
        """
        placed_at_text = self._to_local_naive(placed_at).isoformat() if placed_at else None
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO orders
                (order_id, channel_id, state, order_placed_at, updated_at, total, total_with_tax)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (order_id, channel_id, state, placed_at_text, self._now(),
                 total, total_with_tax),
            )
            conn.execute("DELETE FROM order_lines WHERE order_id = ?", (order_id,))
            conn.executemany(
                """
                INSERT INTO order_lines (order_id, product_id, variant_id, quantity, bundle_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (order_id, str(line["product_id"]), line.get("variant_id"),
                     line.get("quantity", 1), line.get("bundle_id"))
                    for line in lines
                ],
            )
            conn.commit()
        finally:
            conn.close()
