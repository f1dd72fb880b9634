"""
CooccurrenceMatrix -- 주문 단위 동시구매 행렬

주문마다 서로 다른 부모 상품 집합을 뽑고, 집합 안의 모든
순서쌍 (A, B), A != B 에 대해 동시구매 횟수·주문일·주문금액을 누적한다.
양방향(A→B, B→A)을 모두 만든다.

행렬 키는 (source_product_id, target_product_id) 튜플이다.

Usage:
    matrix = build_cooccurrence_matrix(orders)
    pair = matrix[("P1", "P2")]
    # → ProductPair(cooccurrence_count=6, ...)

    # 파티션 병렬 빌드 (결과는 단일 빌드와 동일)
    matrix = build_partitioned(orders, partitions=4)
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fbt.domain.models import OrderRecord, ProductPair
from fbt.utils.logger import get_logger

logger = get_logger(__name__)

PairKey = Tuple[str, str]
CooccurrenceMatrix = Dict[PairKey, ProductPair]


def distinct_products(product_ids: Iterable[str]) -> List[str]:
    """라인 순서를 유지한 중복 제거 상품 목록"""
    seen = {}
    for product_id in product_ids:
        if product_id is None:
            continue
        seen.setdefault(str(product_id), None)
    return list(seen)


def build_cooccurrence_matrix(orders: Iterable[OrderRecord]) -> CooccurrenceMatrix:
    """주문 목록 → 동시구매 행렬

    Args:
        orders: 채널·기간·번들 구성품 제외가 끝난 주문

    Returns:
        {(source, target): ProductPair}
    """
    matrix: CooccurrenceMatrix = {}

    for order in orders:
        product_ids = distinct_products(order.product_ids)
        if len(product_ids) < 2:
            continue  # 쌍이 성립하지 않음

        # 금액 없음 → 가치 점수에서는 0으로 취급
        cart_value = order.total or 0

        for source_id in product_ids:
            for target_id in product_ids:
                if source_id == target_id:
                    continue
                key = (source_id, target_id)
                pair = matrix.get(key)
                if pair is None:
                    pair = ProductPair(source_product_id=source_id, target_product_id=target_id)
                    matrix[key] = pair
                pair.record(order.placed_at, cart_value)

    return matrix


def merge(partials: Sequence[CooccurrenceMatrix]) -> CooccurrenceMatrix:
    """부분 행렬 병합

    파티션 순서대로 횟수를 더하고 주문일·금액 목록을 이어 붙인다.
    입력 행렬은 변경하지 않는다.
    """
    merged: CooccurrenceMatrix = {}
    for partial in partials:
        for key, pair in partial.items():
            target = merged.get(key)
            if target is None:
                target = ProductPair(
                    source_product_id=pair.source_product_id,
                    target_product_id=pair.target_product_id,
                )
                merged[key] = target
            target.cooccurrence_count += pair.cooccurrence_count
            target.order_dates.extend(pair.order_dates)
            target.cart_values.extend(pair.cart_values)
    return merged


def build_partitioned(
    orders: Sequence[OrderRecord],
    partitions: int = 4,
    max_workers: Optional[int] = None,
) -> CooccurrenceMatrix:
    """주문을 연속 구간으로 나눠 병렬 빌드 후 병합

    연속 구간 분할 + 순서대로 병합이므로 결과는
    build_cooccurrence_matrix(orders)와 동일하다.
    """
    orders = list(orders)
    if partitions <= 1 or len(orders) < 2:
        return build_cooccurrence_matrix(orders)

    size = -(-len(orders) // partitions)  # ceil
    chunks = [orders[i:i + size] for i in range(0, len(orders), size)]

    workers = min(max_workers or len(chunks), len(chunks))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        partials = list(executor.map(build_cooccurrence_matrix, chunks))

    logger.debug(f"[동시구매] {len(chunks)}개 파티션 병합")
    return merge(partials)


class CooccurrenceMatrixBuilder:
    """동시구매 행렬 빌더

    partitions > 1 이면 build_partitioned()로 병렬 빌드한다.
    """

    def __init__(self, partitions: int = 1, max_workers: Optional[int] = None):
        self.partitions = partitions
        self.max_workers = max_workers

    def build(self, orders: Sequence[OrderRecord]) -> CooccurrenceMatrix:
        if self.partitions > 1:
            return build_partitioned(orders, self.partitions, self.max_workers)
        return build_cooccurrence_matrix(orders)
