"""
ScoringEngine -- 상품 쌍 다요소 점수 계산

- frequency: min(1.0, 동시구매 횟수 / 전체 주문 수)
- recency:   e^(-경과일 / 분석기간) 평균 (최근일수록 1에 가까움)
- value:     쌍의 주문금액 평균을 쌍 자신의 min/max로 정규화
             (모든 금액이 같으면 0.5)
- final:     가중합 (가중치 합 1.0은 설정에서 검증)
- lift:      (count / total) / (target 라인 수 / total), 선택 항목

frequency 분모는 source 포함 주문 수가 아니라 전체 주문 수이고,
lift의 두 비율도 같은 분모를 쓴다. 순위가 바뀌므로 그대로 유지한다.

Usage:
    engine = ScoringEngine(weights, time_window_days=90, now=now,
                           target_line_count=repo.count_product_lines)
    score = engine.score(pair, total_orders=1200)
"""

import math
from datetime import datetime
from typing import Callable, Optional, Sequence

import numpy as np

from fbt.domain.models import AssociationScore, ProductPair, ScoringWeights
from fbt.utils.logger import get_logger, log_with_context

logger = get_logger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


# =====================================================================
# 개별 점수 (순수 함수)
# =====================================================================

def calculate_frequency_score(cooccurrence_count: int, total_orders: int) -> float:
    """동시구매 빈도 점수 (1.0 상한, 재스케일 없음)"""
    if total_orders <= 0:
        return 0.0
    return min(1.0, cooccurrence_count / total_orders)


def calculate_recency_score(
    order_dates: Sequence[datetime],
    time_window_days: int,
    now: Optional[datetime] = None,
) -> float:
    """지수 감쇠 최근성 점수

    각 동시구매 주문일에 e^(-days_ago / window) 가중치를 주고 평균한다.
    분석 기간 밖의 주문도 거부하지 않고 0에 가깝게 감쇠한다.
    """
    if not order_dates or time_window_days <= 0:
        return 0.0

    now = now or datetime.now()
    days_ago = np.array(
        [(now - d).total_seconds() / SECONDS_PER_DAY for d in order_dates],
        dtype=float,
    )
    weights = np.exp(-days_ago / time_window_days)
    return min(1.0, float(weights.mean()))


def calculate_value_score(cart_values: Sequence[Optional[int]]) -> float:
    """주문금액 기반 가치 점수

    쌍 자신의 관측 범위(min/max)로 정규화한 평균 금액.
    전 구간 공통 범위가 아니라 쌍별 상대 가치다.
    """
    if not cart_values:
        return 0.0

    values = np.array([v or 0 for v in cart_values], dtype=float)
    min_cart = values.min()
    max_cart = values.max()

    if max_cart == min_cart:
        return 0.5  # 모두 같은 금액

    normalized = (values.mean() - min_cart) / (max_cart - min_cart)
    return float(min(1.0, max(0.0, normalized)))


def calculate_final_score(
    frequency_score: float,
    recency_score: float,
    value_score: float,
    weights: ScoringWeights,
) -> float:
    return (
        weights.frequency * frequency_score
        + weights.recency * recency_score
        + weights.value * value_score
    )


def calculate_lift(
    cooccurrence_count: int,
    total_orders: int,
    target_line_count: int,
) -> Optional[float]:
    """lift = confidence / support

    support가 0이면 None (무한대나 오류로 취급하지 않음).
    """
    if total_orders <= 0:
        return None

    support = target_line_count / total_orders
    if support == 0:
        return None

    confidence = cooccurrence_count / total_orders
    return confidence / support


# =====================================================================
# 점수 엔진
# =====================================================================

class ScoringEngine:
    """상품 쌍 점수 계산기

    target_line_count가 주어지면 lift도 계산한다. 주어지지 않으면
    (lift_enabled 꺼짐, 기본값) lift는 None이고 저장 행의 lift는 NULL이다.
    조회 실패는 경고만 남기고 lift를 비워 둔다.
    """

    def __init__(
        self,
        weights: ScoringWeights,
        time_window_days: int,
        now: Optional[datetime] = None,
        target_line_count: Optional[Callable[[str], int]] = None,
    ):
        self.weights = weights
        self.time_window_days = time_window_days
        self.now = now or datetime.now()
        self._target_line_count = target_line_count

    def score(self, pair: ProductPair, total_orders: int) -> AssociationScore:
        frequency_score = calculate_frequency_score(pair.cooccurrence_count, total_orders)
        recency_score = calculate_recency_score(
            pair.order_dates, self.time_window_days, now=self.now
        )
        value_score = calculate_value_score(pair.cart_values)
        final_score = calculate_final_score(
            frequency_score, recency_score, value_score, self.weights
        )

        return AssociationScore(
            frequency_score=frequency_score,
            recency_score=recency_score,
            value_score=value_score,
            final_score=final_score,
            lift=self._lift(pair, total_orders),
        )

    def _lift(self, pair: ProductPair, total_orders: int) -> Optional[float]:
        if self._target_line_count is None or total_orders <= 0:
            return None

        try:
            target_lines = self._target_line_count(pair.target_product_id)
            lift = calculate_lift(pair.cooccurrence_count, total_orders, target_lines)
        except Exception as e:
            log_with_context(
                logger, "warning", f"[연관계산] lift 계산 실패: {e}",
                source=pair.source_product_id, target=pair.target_product_id,
            )
            return None

        if lift is not None and not math.isfinite(lift):
            return None
        return lift
