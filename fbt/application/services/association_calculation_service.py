"""
AssociationCalculationService -- 연관 계산 파이프라인

주문 조회 → 동시구매 행렬 → 쌍별 점수 → 임계값 필터 → 채널 전체 교체.
한 번 호출에 한 채널, 한 분석 기간을 처리한다. 내부 재시도는 없다
(재시도는 스케줄러 책임).

Usage:
    service = AssociationCalculationService(db_path=db_path)
    summary = service.calculate(settings, channel_id="default")
    # → CalculationRunSummary(associations_written=120, duration_ms=850, ...)
"""

import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Union

from fbt.association.cooccurrence import CooccurrenceMatrixBuilder
from fbt.association.scoring import ScoringEngine
from fbt.domain.errors import (
    ClassifierUnavailableError,
    CorpusUnavailableError,
    PersistenceFailedError,
    ScoringFailedError,
)
from fbt.domain.models import (
    CalculationRunSummary,
    CalculationSettings,
    ProductAssociation,
)
from fbt.infrastructure.database.repos import (
    AssociationRepository,
    OrderCorpusRepository,
    ProductRepository,
)
from fbt.settings.app_config import DEFAULT_CHANNEL_ID
from fbt.settings.constants import LIFT_CHANCE_LEVEL
from fbt.utils.logger import get_logger, log_with_context

logger = get_logger(__name__)


class AssociationCalculationService:
    """연관 계산 파이프라인

    저장소와 번들 판별기는 주입 가능하다 (테스트·다른 저장소용).
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        order_repo: Optional[OrderCorpusRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        association_repo: Optional[AssociationRepository] = None,
        is_bundle: Optional[Callable[[str], bool]] = None,
        matrix_builder: Optional[CooccurrenceMatrixBuilder] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.order_repo = order_repo or OrderCorpusRepository(db_path=db_path)
        self.product_repo = product_repo or ProductRepository(db_path=db_path)
        self.association_repo = association_repo or AssociationRepository(db_path=db_path)
        self.is_bundle = is_bundle or self.product_repo.is_bundle
        self.matrix_builder = matrix_builder or CooccurrenceMatrixBuilder()
        self.clock = clock

    def calculate_associations(
        self,
        settings: CalculationSettings,
        channel_id: Optional[str] = None,
    ) -> int:
        """연관 계산 실행 (저장 건수만 반환)"""
        return self.calculate(settings, channel_id=channel_id).associations_written

    def calculate(
        self,
        settings: CalculationSettings,
        channel_id: Optional[str] = None,
    ) -> CalculationRunSummary:
        """연관 계산 실행

        lift는 settings.lift_enabled일 때만 계산한다. 기본값(꺼짐)에서는
        모든 행의 lift가 NULL이고 lift 필터는 적용되지 않는다.

        Args:
            settings: 실행 동안 고정되는 설정 스냅샷
            channel_id: 채널 ID (기본: DEFAULT_CHANNEL_ID)

        Returns:
            CalculationRunSummary

        Raises:
            CorpusUnavailableError: 주문 조회 실패 (저장 없음)
            ClassifierUnavailableError: 번들 판별 실패 (저장 없음)
            ScoringFailedError: 모든 쌍의 점수 계산 실패 (저장 없음)
            PersistenceFailedError: 교체 실패 (롤백됨)
        """
        started = time.perf_counter()
        channel_id = channel_id or DEFAULT_CHANNEL_ID
        now = self.clock()
        summary = CalculationRunSummary(channel_id=channel_id)

        logger.info(f"[연관계산] 시작: channel={channel_id}")

        # 1. 기간 내 주문
        cutoff = now - timedelta(days=settings.analysis_time_window_days)
        try:
            orders = self.order_repo.fetch_orders(cutoff, channel_id)
        except Exception as e:
            logger.error(f"[연관계산] 주문 조회 실패: {e}", exc_info=True)
            raise CorpusUnavailableError(str(e)) from e

        summary.orders_considered = len(orders)
        logger.info(f"[연관계산] 기간 내 주문 {len(orders)}건")

        if not orders:
            summary.duration_ms = self._elapsed_ms(started)
            return summary

        # 2. 동시구매 행렬
        matrix = self.matrix_builder.build(orders)
        summary.pairs_considered = len(matrix)
        logger.info(f"[연관계산] 상품 쌍 {len(matrix)}개")

        # 3. 점수 + 필터
        engine = ScoringEngine(
            weights=settings.weights,
            time_window_days=settings.analysis_time_window_days,
            now=now,
            target_line_count=self._support_lookup(settings),
        )
        associations: List[ProductAssociation] = []
        total_orders = len(orders)
        scored = 0
        failures = 0

        for key in sorted(matrix):
            pair = matrix[key]

            if pair.cooccurrence_count < settings.min_cooccurrence_threshold:
                continue

            if self._either_is_bundle(pair.source_product_id, pair.target_product_id):
                continue

            try:
                score = engine.score(pair, total_orders)
                scored += 1
            except Exception as e:
                failures += 1
                log_with_context(
                    logger, "warning", f"[연관계산] 점수 계산 실패, 건너뜀: {e}",
                    source=pair.source_product_id, target=pair.target_product_id,
                )
                continue

            if score.final_score < settings.min_score_threshold:
                continue

            # lift가 있으면 우연 수준(<= 1.0)은 제외, 없으면 통과
            if score.lift is not None and score.lift <= LIFT_CHANCE_LEVEL:
                continue

            associations.append(ProductAssociation.from_pair(pair, score, channel_id, now))

        # 전부 실패면 코퍼스 수준 오류: 기존 연관을 지우지 않는다
        if failures and not scored:
            logger.error(
                f"[연관계산] 점수 계산 전부 실패: channel={channel_id}, {failures}쌍"
            )
            raise ScoringFailedError(
                f"Scoring failed for all {failures} candidate pairs"
            )

        logger.info(f"[연관계산] 필터 후 연관 {len(associations)}건")

        # 4. 채널 전체 교체
        try:
            written = self.association_repo.replace_channel_associations(channel_id, associations)
        except Exception as e:
            logger.error(f"[연관계산] 저장 실패: channel={channel_id} - {e}", exc_info=True)
            raise PersistenceFailedError(str(e)) from e

        summary.associations_written = written
        summary.duration_ms = self._elapsed_ms(started)
        logger.info(
            f"[연관계산] 완료: channel={channel_id}, "
            f"{written}건, {summary.duration_ms}ms"
        )
        return summary

    # -----------------------------------------------------------------
    # 내부
    # -----------------------------------------------------------------

    def _either_is_bundle(self, source_id: str, target_id: str) -> bool:
        """쌍 단위 실시간 번들 판별 (판별 실패는 치명적)"""
        try:
            return bool(self.is_bundle(source_id) or self.is_bundle(target_id))
        except Exception as e:
            logger.error(f"[연관계산] 번들 판별 실패: {source_id}-{target_id} - {e}")
            raise ClassifierUnavailableError(str(e)) from e

    def _support_lookup(
        self,
        settings: CalculationSettings,
    ) -> Optional[Callable[[str], int]]:
        """lift support 조회 (전체 코퍼스: 채널·기간 제한 없음)"""
        if not settings.lift_enabled:
            return None
        return self.order_repo.count_product_lines

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
