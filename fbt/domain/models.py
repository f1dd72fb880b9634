"""
도메인 값 객체 (Value Objects)

연관 계산·추천 조회에서 사용하는 데이터 구조를 정의합니다.
I/O 의존성 없이 순수 데이터 구조만 포함합니다.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from fbt.settings.constants import (
    DEFAULT_SETTINGS,
    MAX_TIME_WINDOW_DAYS,
    MIN_TIME_WINDOW_DAYS,
    WEIGHT_SUM_TOLERANCE,
)


class DisplayContext(str, Enum):
    """추천 노출 위치"""
    PDP_RELATED = "PDP_RELATED"
    PDP_ADD_TO_CART = "PDP_ADD_TO_CART"
    CART = "CART"
    CHECKOUT = "CHECKOUT"


@dataclass(frozen=True)
class OrderRecord:
    """분석 대상 주문 (읽기 전용)

    product_ids는 번들 구성품 라인을 제외한 부모 상품 ID (라인 순서).
    """
    order_id: str
    placed_at: datetime
    total: Optional[int]
    product_ids: List[str] = field(default_factory=list)


@dataclass
class ProductPair:
    """상품 쌍 동시구매 통계 (source → target 방향)"""
    source_product_id: str
    target_product_id: str
    cooccurrence_count: int = 0
    order_dates: List[datetime] = field(default_factory=list)
    cart_values: List[int] = field(default_factory=list)

    @property
    def key(self):
        return (self.source_product_id, self.target_product_id)

    def record(self, placed_at: datetime, cart_value: int) -> None:
        self.cooccurrence_count += 1
        self.order_dates.append(placed_at)
        self.cart_values.append(cart_value)


@dataclass(frozen=True)
class ScoringWeights:
    """점수 가중치 (합계 1.0은 설정 쪽에서 검증)"""
    frequency: float = 0.5
    recency: float = 0.3
    value: float = 0.2


@dataclass(frozen=True)
class AssociationScore:
    """상품 쌍 점수"""
    frequency_score: float
    recency_score: float
    value_score: float
    final_score: float
    lift: Optional[float] = None


@dataclass
class ProductAssociation:
    """저장되는 연관 레코드"""
    source_product_id: str
    target_product_id: str
    channel_id: str
    cooccurrence_count: int
    frequency_score: float
    recency_score: float
    value_score: float
    final_score: float
    lift: Optional[float]
    last_calculated: datetime

    @classmethod
    def from_pair(
        cls,
        pair: ProductPair,
        score: AssociationScore,
        channel_id: str,
        calculated_at: datetime,
    ) -> "ProductAssociation":
        return cls(
            source_product_id=pair.source_product_id,
            target_product_id=pair.target_product_id,
            channel_id=channel_id,
            cooccurrence_count=pair.cooccurrence_count,
            frequency_score=score.frequency_score,
            recency_score=score.recency_score,
            value_score=score.value_score,
            final_score=score.final_score,
            lift=score.lift,
            last_calculated=calculated_at,
        )

    def validate(self) -> List[str]:
        """점수 범위 검증 (오류 메시지 목록, 비어 있으면 정상)"""
        errors: List[str] = []

        for name in ("frequency_score", "recency_score", "value_score", "final_score"):
            value = getattr(self, name)
            if value < 0 or value > 1:
                errors.append(f"{name} must be between 0 and 1")

        if self.cooccurrence_count < 0:
            errors.append("cooccurrence_count must be non-negative")

        if self.source_product_id == self.target_product_id:
            errors.append("source and target products must be different")

        return errors


@dataclass(frozen=True)
class CalculationSettings:
    """연관 계산 설정 스냅샷

    한 번의 실행 동안 변경되지 않는다. 기본값은
    fbt.settings.constants.DEFAULT_SETTINGS 와 동일하다.
    """
    enabled: bool = False
    job_schedule: str = "02:00"
    analysis_time_window_days: int = 90
    min_cooccurrence_threshold: int = 5
    min_score_threshold: float = 0.3
    max_recommendations_per_product: int = 4
    frequency_weight: float = 0.5
    recency_weight: float = 0.3
    value_weight: float = 0.2
    pdp_related_section: bool = True
    pdp_under_add_to_cart: bool = True
    cart_page: bool = True
    checkout_page: bool = False
    fallback_to_related_products: bool = True
    lift_enabled: bool = False
    # 마지막 실행 통계
    last_calculation: Optional[datetime] = None
    last_calculation_duration_ms: Optional[int] = None
    last_calculation_associations_count: Optional[int] = None

    @classmethod
    def defaults(cls) -> "CalculationSettings":
        return cls(**DEFAULT_SETTINGS)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    @property
    def weights(self) -> ScoringWeights:
        return ScoringWeights(
            frequency=self.frequency_weight,
            recency=self.recency_weight,
            value=self.value_weight,
        )

    def replace(self, **changes: Any) -> "CalculationSettings":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def is_location_enabled(self, context: DisplayContext) -> bool:
        """노출 위치 토글 확인"""
        toggles = {
            DisplayContext.PDP_RELATED: self.pdp_related_section,
            DisplayContext.PDP_ADD_TO_CART: self.pdp_under_add_to_cart,
            DisplayContext.CART: self.cart_page,
            DisplayContext.CHECKOUT: self.checkout_page,
        }
        return toggles.get(context, False)

    def validate(self) -> List[str]:
        """설정 검증 (오류 메시지 목록, 비어 있으면 정상)"""
        errors: List[str] = []

        if self.analysis_time_window_days < MIN_TIME_WINDOW_DAYS:
            errors.append("Analysis time window must be at least 1 day")
        if self.analysis_time_window_days > MAX_TIME_WINDOW_DAYS:
            errors.append("Analysis time window cannot exceed 365 days")

        if self.min_cooccurrence_threshold < 1:
            errors.append("Minimum cooccurrence threshold must be at least 1")

        if self.min_score_threshold < 0 or self.min_score_threshold > 1:
            errors.append("Minimum score threshold must be between 0 and 1")

        if self.max_recommendations_per_product < 1:
            errors.append("Maximum recommendations must be at least 1")

        for label, weight in (
            ("Frequency", self.frequency_weight),
            ("Recency", self.recency_weight),
            ("Value", self.value_weight),
        ):
            if weight < 0 or weight > 1:
                errors.append(f"{label} weight must be between 0 and 1")

        weight_sum = self.frequency_weight + self.recency_weight + self.value_weight
        if abs(weight_sum - 1.0) > WEIGHT_SUM_TOLERANCE:
            errors.append("Scoring weights must sum to 1.0")

        if not self.job_schedule or not self.job_schedule.strip():
            errors.append("Job schedule cannot be empty")
        else:
            try:
                datetime.strptime(self.job_schedule.strip(), "%H:%M")
            except ValueError:
                errors.append("Job schedule must be a HH:MM time")

        return errors


@dataclass
class CalculationRunSummary:
    """파이프라인 1회 실행 결과"""
    channel_id: str
    associations_written: int = 0
    duration_ms: int = 0
    orders_considered: int = 0
    pairs_considered: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class AssociationStats:
    """채널별 연관 테이블 통계"""
    total_associations: int = 0
    products_with_recommendations: int = 0
    average_recommendations_per_product: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)
