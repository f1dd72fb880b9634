"""
연관 저장소 (AssociationRepository)

product_associations 테이블.
채널 단위 전체 교체는 하나의 트랜잭션(삭제 → 일괄 INSERT)으로 처리하여
읽는 쪽이 이전/새 집합 중 하나만 보도록 한다.
"""

import sqlite3
from typing import Any, Dict, List, Optional

from fbt.domain.models import AssociationStats, ProductAssociation
from fbt.infrastructure.database.base_repository import BaseRepository
from fbt.settings.constants import SAVE_CHUNK_SIZE
from fbt.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "source_product_id, target_product_id, channel_id, cooccurrence_count, "
    "frequency_score, recency_score, value_score, final_score, lift, last_calculated"
)


class AssociationRepository(BaseRepository):
    """채널별 연관 테이블 저장소"""

    def replace_channel_associations(
        self,
        channel_id: str,
        associations: List[ProductAssociation],
    ) -> int:
        """채널 연관 집합 전체 교체 (단일 트랜잭션)

        실패 시 롤백 후 예외를 그대로 올린다.

        Returns:
            저장 건수
        """
        rows = [self._to_row(a) for a in associations]
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            deleted = conn.execute(
                "DELETE FROM product_associations WHERE channel_id = ?",
                (channel_id,),
            ).rowcount
            for start in range(0, len(rows), SAVE_CHUNK_SIZE):
                conn.executemany(
                    f"INSERT INTO product_associations ({_COLUMNS}) "
                    f"VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows[start:start + SAVE_CHUNK_SIZE],
                )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(
            f"[연관저장] channel={channel_id} 이전 {deleted}건 삭제, {len(rows)}건 저장"
        )
        return len(rows)

    def find_by_source(
        self,
        product_id: str,
        channel_id: str,
        limit: Optional[int] = None,
    ) -> List[ProductAssociation]:
        """source 상품 기준 연관 조회 (final_score 내림차순)"""
        sql = (
            f"SELECT {_COLUMNS} FROM product_associations "
            "WHERE source_product_id = ? AND channel_id = ? "
            "ORDER BY final_score DESC, target_product_id"
        )
        params: tuple = (str(product_id), channel_id)
        if limit is not None:
            sql += " LIMIT ?"
            params += (int(limit),)

        conn = self._get_conn()
        try:
            return [self._from_row(row) for row in conn.execute(sql, params)]
        finally:
            conn.close()

    def find_by_sources(self, product_ids: List[str], channel_id: str) -> List[ProductAssociation]:
        """여러 source 상품의 연관 일괄 조회"""
        if not product_ids:
            return []
        ids = [str(pid) for pid in dict.fromkeys(product_ids)]
        placeholders = ",".join("?" for _ in ids)
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM product_associations
                WHERE source_product_id IN ({placeholders}) AND channel_id = ?
                ORDER BY source_product_id, final_score DESC, target_product_id
                """,
                ids + [channel_id],
            )
            return [self._from_row(row) for row in cursor]
        finally:
            conn.close()

    def list_channel_associations(self, channel_id: str) -> List[ProductAssociation]:
        """채널 전체 연관 (source, target 순)"""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM product_associations
                WHERE channel_id = ?
                ORDER BY source_product_id, target_product_id
                """,
                (channel_id,),
            )
            return [self._from_row(row) for row in cursor]
        finally:
            conn.close()

    def get_stats(self, channel_id: str) -> AssociationStats:
        """채널 연관 통계"""
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COUNT(DISTINCT source_product_id) AS sources
                FROM product_associations
                WHERE channel_id = ?
                """,
                (channel_id,),
            ).fetchone()
        finally:
            conn.close()

        total = self._to_int(row["total"])
        sources = self._to_int(row["sources"])
        average = total / sources if sources > 0 else 0.0
        return AssociationStats(
            total_associations=total,
            products_with_recommendations=sources,
            average_recommendations_per_product=round(average, 2),
        )

    # -----------------------------------------------------------------
    # 행 변환
    # -----------------------------------------------------------------

    def _to_row(self, a: ProductAssociation) -> tuple:
        return (
            a.source_product_id, a.target_product_id, a.channel_id,
            a.cooccurrence_count, a.frequency_score, a.recency_score,
            a.value_score, a.final_score, a.lift, a.last_calculated.isoformat(),
        )

    def _from_row(self, row: Any) -> ProductAssociation:
        data: Dict[str, Any] = dict(row)
        return ProductAssociation(
            source_product_id=data["source_product_id"],
            target_product_id=data["target_product_id"],
            channel_id=data["channel_id"],
            cooccurrence_count=self._to_int(data["cooccurrence_count"]),
            frequency_score=float(data["frequency_score"]),
            recency_score=float(data["recency_score"]),
            value_score=float(data["value_score"]),
            final_score=float(data["final_score"]),
            lift=self._to_float(data["lift"]),
            last_calculated=self._to_datetime(data["last_calculated"]),
        )
