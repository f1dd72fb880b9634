"""
공유 테스트 픽스처

- tmp_path SQLite DB (테스트 간 격리, 스키마 생성 완료)
- 고정 시각 (NOW) 과 시계 픽스처
- 주문·상품·연관 시드 헬퍼
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fbt.domain.models import CalculationSettings, ProductAssociation
from fbt.infrastructure.database.repos import (
    AssociationRepository,
    OrderCorpusRepository,
    ProductRepository,
)
from fbt.infrastructure.database.schema import init_db

# 테스트 세션 기준 시각 (세션 동안 고정)
NOW = datetime.now().replace(microsecond=0)


@pytest.fixture
def db_path(tmp_path):
    """스키마가 생성된 테스트 DB 경로"""
    path = tmp_path / "test_fbt.db"
    init_db(path)
    return path


@pytest.fixture
def clock():
    """고정 시계 (NOW)"""
    return lambda: NOW


@pytest.fixture
def settings():
    """기본 설정 스냅샷 (enabled=True)"""
    return CalculationSettings.defaults().replace(enabled=True)


# =====================================================================
# 시드 헬퍼
# =====================================================================

def seed_orders(db_path, orders, channel_id="default", start=1):
    """주문 시드

    Args:
        orders: [(product_ids, days_ago, total), ...]
            product_ids 항목이 (product_id, bundle_id) 튜플이면 번들 구성품 라인
    """
    repo = OrderCorpusRepository(db_path=db_path)
    for offset, (product_ids, days_ago, total) in enumerate(orders):
        lines = []
        for item in product_ids:
            if isinstance(item, tuple):
                lines.append({"product_id": item[0], "bundle_id": item[1]})
            else:
                lines.append({"product_id": item})
        repo.save_order(
            order_id=f"{channel_id}-O{start + offset}",
            channel_id=channel_id,
            placed_at=NOW - timedelta(days=days_ago),
            lines=lines,
            total=total,
        )


def seed_products(db_path, product_ids, bundles=(), disabled=(), related=None):
    """상품 시드 (related: {product_id: [related ids]})"""
    repo = ProductRepository(db_path=db_path)
    related = related or {}
    for pid in product_ids:
        repo.save_product(
            pid,
            product_name=f"상품 {pid}",
            enabled=pid not in disabled,
            is_bundle=pid in bundles,
            related_product_ids=related.get(pid),
        )


def make_association(source, target, final_score, channel_id="default", count=5, lift=None):
    """테스트용 연관 레코드"""
    return ProductAssociation(
        source_product_id=source,
        target_product_id=target,
        channel_id=channel_id,
        cooccurrence_count=count,
        frequency_score=0.5,
        recency_score=0.5,
        value_score=0.5,
        final_score=final_score,
        lift=lift,
        last_calculated=NOW,
    )


def seed_associations(db_path, associations, channel_id="default"):
    AssociationRepository(db_path=db_path).replace_channel_associations(channel_id, associations)


def ab_ac_orders():
    """10건 주문: A+B 6건, A+C 4건 (모두 1일 전, 금액 동일)"""
    return (
        [(["A", "B"], 1, 10000)] * 6
        + [(["A", "C"], 1, 10000)] * 4
    )
