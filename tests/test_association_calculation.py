"""
연관 계산 파이프라인 (AssociationCalculationService) 테스트

- 10건 주문 시나리오: A+B 6건, A+C 4건
- 임계값 필터 (동시구매 횟수, 최종 점수, lift)
- 번들 제외 (번들 상품 쌍 / 번들 구성품 라인)
- 채널·기간 격리
- 실패 시 기존 연관 유지 (주문 조회 / 번들 판별 / 점수 계산 / 저장)
- 오프셋 포함 주문 시각
- 결정성
"""

import sqlite3
from datetime import timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import (
    NOW,
    ab_ac_orders,
    make_association,
    seed_associations,
    seed_orders,
    seed_products,
)
from fbt.application.services.association_calculation_service import (
    AssociationCalculationService,
)
from fbt.association.cooccurrence import CooccurrenceMatrixBuilder
from fbt.association.scoring import ScoringEngine
from fbt.domain.errors import (
    CalculationError,
    ClassifierUnavailableError,
    CorpusUnavailableError,
    PersistenceFailedError,
    ScoringFailedError,
)
from fbt.infrastructure.database.repos import AssociationRepository, OrderCorpusRepository


def _pairs(db_path, channel_id="default"):
    rows = AssociationRepository(db_path=db_path).list_channel_associations(channel_id)
    return {(a.source_product_id, a.target_product_id) for a in rows}


@pytest.fixture
def service(db_path, clock):
    return AssociationCalculationService(db_path=db_path, clock=clock)


@pytest.mark.db
class TestCalculationScenario:
    """A+B 6건 / A+C 4건 시나리오"""

    def test_default_thresholds_keep_only_frequent_pair(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())

        summary = service.calculate(settings)

        assert summary.associations_written == 2
        assert summary.orders_considered == 10
        assert summary.pairs_considered == 4
        assert _pairs(db_path) == {("A", "B"), ("B", "A")}

    def test_scores_of_stored_pair(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        service.calculate(settings)

        rows = AssociationRepository(db_path=db_path).find_by_source("A", "default")
        assert len(rows) == 1
        ab = rows[0]

        assert ab.cooccurrence_count == 6
        assert ab.frequency_score == pytest.approx(0.6)
        assert ab.value_score == 0.5
        assert ab.recency_score == pytest.approx(0.98895, abs=1e-4)
        assert ab.final_score == pytest.approx(0.5 * 0.6 + 0.3 * ab.recency_score + 0.2 * 0.5)
        assert ab.lift is None
        assert ab.last_calculated == NOW
        assert ab.validate() == []

    def test_lower_count_threshold_keeps_both_pairs(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())

        written = service.calculate_associations(settings.replace(min_cooccurrence_threshold=3))

        assert written == 4
        assert _pairs(db_path) == {("A", "B"), ("B", "A"), ("A", "C"), ("C", "A")}

    def test_min_score_threshold(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())

        written = service.calculate_associations(settings.replace(min_score_threshold=0.7))

        assert written == 0

    def test_frequency_uses_all_orders_in_window(self, db_path, service, settings):
        """단일 상품 주문도 전체 주문 수(분모)에 포함"""
        seed_orders(db_path, ab_ac_orders())
        seed_orders(db_path, [(["E"], 1, 10000)] * 10, start=100)

        summary = service.calculate(settings)

        ab = AssociationRepository(db_path=db_path).find_by_source("A", "default")[0]
        assert summary.orders_considered == 20
        assert ab.frequency_score == pytest.approx(0.3)

    def test_lift_at_chance_level_filtered(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())

        written = service.calculate_associations(settings.replace(lift_enabled=True))

        # lift(A→B) = (6/10) / (6/10) = 1.0 → 제외
        assert written == 0

    def test_lift_above_chance_level_kept(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        service.order_repo.count_product_lines = MagicMock(return_value=1)

        written = service.calculate_associations(settings.replace(lift_enabled=True))

        # lift(A→B) = (6/10) / (1/10) = 6.0 → 유지
        assert written == 2
        rows = AssociationRepository(db_path=db_path).list_channel_associations("default")
        assert [a.lift for a in rows] == [pytest.approx(6.0), pytest.approx(6.0)]

    def test_lift_support_counts_whole_corpus(self, db_path, service, settings):
        """support 조회는 채널 구분 없이 상품 ID만 넘긴다"""
        seed_orders(db_path, ab_ac_orders())
        service.order_repo.count_product_lines = MagicMock(return_value=1)

        service.calculate(settings.replace(lift_enabled=True))

        calls = service.order_repo.count_product_lines.call_args_list
        assert sorted(c.args for c in calls) == [("A",), ("B",)]
        assert all(c.kwargs == {} for c in calls)

    def test_lift_null_by_default(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        service.order_repo.count_product_lines = MagicMock(return_value=1)

        service.calculate(settings)

        rows = AssociationRepository(db_path=db_path).list_channel_associations("default")
        assert rows and all(a.lift is None for a in rows)
        service.order_repo.count_product_lines.assert_not_called()

    def test_rows_in_deterministic_order(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        relaxed = settings.replace(min_cooccurrence_threshold=1)

        service.calculate(relaxed)
        first = AssociationRepository(db_path=db_path).list_channel_associations("default")
        service.calculate(relaxed)
        second = AssociationRepository(db_path=db_path).list_channel_associations("default")

        assert first == second

    def test_partitioned_builder_same_result(self, db_path, clock, settings):
        seed_orders(db_path, ab_ac_orders())
        relaxed = settings.replace(min_cooccurrence_threshold=1)

        AssociationCalculationService(db_path=db_path, clock=clock).calculate(relaxed)
        single = AssociationRepository(db_path=db_path).list_channel_associations("default")

        AssociationCalculationService(
            db_path=db_path, clock=clock,
            matrix_builder=CooccurrenceMatrixBuilder(partitions=3),
        ).calculate(relaxed)
        parallel = AssociationRepository(db_path=db_path).list_channel_associations("default")

        assert single == parallel


@pytest.mark.db
class TestBundleExclusion:

    def test_bundle_endpoint_excluded(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        seed_products(db_path, ["A", "B", "C"], bundles={"B"})

        service.calculate(settings.replace(min_cooccurrence_threshold=3))

        assert _pairs(db_path) == {("A", "C"), ("C", "A")}

    def test_bundle_component_lines_ignored(self, db_path, service, settings):
        """bundle_id가 있는 라인은 주문 코퍼스에서 제외"""
        orders = [(["A", "B", ("X", "BUNDLE-1")], 1, 10000)] * 6
        seed_orders(db_path, orders)

        service.calculate(settings)

        assert _pairs(db_path) == {("A", "B"), ("B", "A")}

    def test_orders_with_only_component_lines_still_counted(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        seed_orders(db_path, [([("X", "BUNDLE-1"), ("Y", "BUNDLE-1")], 1, 5000)] * 10, start=100)

        summary = service.calculate(settings)

        assert summary.orders_considered == 20
        assert "X" not in {s for s, _ in _pairs(db_path)}


@pytest.mark.db
class TestCorpusScope:

    def test_orders_outside_window_ignored(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders())
        seed_orders(db_path, [(["A", "D"], 120, 10000)] * 10, start=100)

        summary = service.calculate(settings.replace(min_cooccurrence_threshold=1))

        assert summary.orders_considered == 10
        assert ("A", "D") not in _pairs(db_path)

    def test_channels_isolated(self, db_path, service, settings):
        seed_orders(db_path, ab_ac_orders(), channel_id="default")
        seed_orders(db_path, [(["M", "N"], 1, 10000)] * 6, channel_id="outlet")

        service.calculate(settings, channel_id="outlet")

        assert _pairs(db_path, "outlet") == {("M", "N"), ("N", "M")}
        assert _pairs(db_path, "default") == set()

    def test_zero_orders_leaves_store_untouched(self, db_path, service, settings):
        seed_associations(db_path, [make_association("P", "Q", 0.8)])

        summary = service.calculate(settings)

        assert summary.associations_written == 0
        assert summary.orders_considered == 0
        assert _pairs(db_path) == {("P", "Q")}

    def test_previous_set_replaced(self, db_path, service, settings):
        seed_associations(db_path, [make_association("P", "Q", 0.8)])
        seed_orders(db_path, ab_ac_orders())

        service.calculate(settings)

        assert _pairs(db_path) == {("A", "B"), ("B", "A")}


@pytest.mark.db
class TestCalculationFailures:
    """실패 시 예외 전파 + 기존 연관 유지"""

    @pytest.fixture
    def existing(self, db_path):
        seed_associations(db_path, [make_association("P", "Q", 0.8)])
        seed_orders(db_path, ab_ac_orders())

    def test_corpus_failure(self, db_path, clock, settings, existing):
        order_repo = MagicMock()
        order_repo.fetch_orders.side_effect = sqlite3.OperationalError("database is locked")
        service = AssociationCalculationService(db_path=db_path, order_repo=order_repo, clock=clock)

        with pytest.raises(CorpusUnavailableError):
            service.calculate(settings)
        assert _pairs(db_path) == {("P", "Q")}

    def test_classifier_failure_is_fatal(self, db_path, clock, settings, existing):
        def broken(product_id):
            raise RuntimeError("catalog unavailable")

        service = AssociationCalculationService(db_path=db_path, is_bundle=broken, clock=clock)

        with pytest.raises(ClassifierUnavailableError):
            service.calculate(settings)
        assert _pairs(db_path) == {("P", "Q")}

    def test_persistence_failure(self, db_path, clock, settings, existing):
        association_repo = MagicMock()
        association_repo.replace_channel_associations.side_effect = sqlite3.OperationalError("disk I/O error")
        service = AssociationCalculationService(
            db_path=db_path, association_repo=association_repo, clock=clock,
        )

        with pytest.raises(PersistenceFailedError) as exc_info:
            service.calculate(settings)
        assert isinstance(exc_info.value, CalculationError)
        assert _pairs(db_path) == {("P", "Q")}

    def test_replace_rolls_back_on_error(self, db_path, existing):
        """중복 키로 INSERT 실패 → 삭제까지 롤백"""
        repo = AssociationRepository(db_path=db_path)
        duplicate = [make_association("A", "B", 0.5), make_association("A", "B", 0.6)]

        with pytest.raises(sqlite3.IntegrityError):
            repo.replace_channel_associations("default", duplicate)

        assert _pairs(db_path) == {("P", "Q")}

    def test_all_pairs_failing_to_score_keeps_previous_set(
        self, db_path, service, settings, existing, monkeypatch,
    ):
        def broken(self, pair, total_orders):
            raise TypeError("can't subtract offset-naive and offset-aware datetimes")

        monkeypatch.setattr(ScoringEngine, "score", broken)

        with pytest.raises(ScoringFailedError) as exc_info:
            service.calculate(settings.replace(min_cooccurrence_threshold=1))
        assert isinstance(exc_info.value, CalculationError)
        assert _pairs(db_path) == {("P", "Q")}

    def test_single_pair_failure_skipped(self, db_path, service, settings, existing, monkeypatch):
        original = ScoringEngine.score

        def flaky(self, pair, total_orders):
            if pair.source_product_id == "B":
                raise ValueError("bad cart value")
            return original(self, pair, total_orders)

        monkeypatch.setattr(ScoringEngine, "score", flaky)

        written = service.calculate_associations(settings)

        assert written == 1
        assert _pairs(db_path) == {("A", "B")}


@pytest.mark.db
class TestOffsetTimestamps:
    """오프셋이 포함된 주문 시각 (UTC 등)"""

    def test_aware_placed_at_scored(self, db_path, service, settings):
        seed_associations(db_path, [make_association("P", "Q", 0.8)])
        repo = OrderCorpusRepository(db_path=db_path)
        placed_at = (NOW - timedelta(days=1)).astimezone(timezone.utc)
        for i, product_ids in enumerate([["A", "B"]] * 6 + [["A", "C"]] * 4):
            repo.save_order(
                f"O{i}", "default", placed_at,
                [{"product_id": pid} for pid in product_ids], total=10000,
            )

        summary = service.calculate(settings)

        assert summary.associations_written == 2
        assert _pairs(db_path) == {("A", "B"), ("B", "A")}
        ab = AssociationRepository(db_path=db_path).find_by_source("A", "default")[0]
        assert ab.recency_score == pytest.approx(0.98895, abs=1e-4)

    def test_offset_string_in_storage_scored(self, db_path, service, settings):
        """이미 오프셋 문자열로 저장된 주문도 조회 시 naive로 변환"""
        seed_orders(db_path, ab_ac_orders())
        conn = sqlite3.connect(str(db_path))
        conn.execute(
            "UPDATE orders SET order_placed_at = ?",
            ((NOW - timedelta(days=1)).astimezone(timezone.utc).isoformat(),),
        )
        conn.commit()
        conn.close()

        summary = service.calculate(settings)

        assert summary.associations_written == 2
