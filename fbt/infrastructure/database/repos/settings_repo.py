"""
AssociationSettingsRepository -- 연관 계산 설정 저장소

association_settings 단일 행(id = 1).
기본값 행 생성은 ensure_defaults()로 명시적으로 수행한다
(init-db / 스케줄러 시작 시). 조회 시 행이 없으면 기본값 스냅샷만
반환하고 DB에는 쓰지 않는다.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fbt.domain.errors import SettingsValidationError
from fbt.domain.models import CalculationSettings
from fbt.infrastructure.database.base_repository import BaseRepository
from fbt.utils.logger import get_logger

logger = get_logger(__name__)

_BOOL_FIELDS = frozenset({
    "enabled", "pdp_related_section", "pdp_under_add_to_cart",
    "cart_page", "checkout_page", "fallback_to_related_products", "lift_enabled",
})
_INT_FIELDS = frozenset({
    "analysis_time_window_days", "min_cooccurrence_threshold",
    "max_recommendations_per_product",
    "last_calculation_duration_ms", "last_calculation_associations_count",
})
_FLOAT_FIELDS = frozenset({
    "min_score_threshold", "frequency_weight", "recency_weight", "value_weight",
})
_STATS_FIELDS = frozenset({
    "last_calculation", "last_calculation_duration_ms",
    "last_calculation_associations_count",
})


class AssociationSettingsRepository(BaseRepository):
    """연관 계산 설정 (프로세스 간 공유, DB 영속)"""

    def ensure_defaults(self) -> CalculationSettings:
        """설정 행이 없으면 기본값으로 생성"""
        existing = self._load()
        if existing is not None:
            return existing

        defaults = CalculationSettings.defaults()
        self._write(defaults, insert=True)
        logger.info("[설정] 기본 설정 생성")
        return defaults

    def get_settings(self) -> CalculationSettings:
        """현재 설정 스냅샷 (행 없으면 기본값, 저장 안 함)"""
        existing = self._load()
        if existing is None:
            logger.debug("[설정] 설정 행 없음 → 기본값 사용")
            return CalculationSettings.defaults()
        return existing

    def update_settings(self, **changes: Any) -> CalculationSettings:
        """설정 변경 (검증 후 저장)

        Raises:
            SettingsValidationError: 알 수 없는 키 또는 검증 실패
        """
        allowed = set(CalculationSettings.field_names()) - _STATS_FIELDS
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise SettingsValidationError([f"Unknown setting: {key}" for key in unknown])

        try:
            coerced = {k: self._coerce(k, v) for k, v in changes.items()}
        except (TypeError, ValueError) as e:
            raise SettingsValidationError([f"Invalid value: {e}"]) from e

        current = self.ensure_defaults()
        updated = current.replace(**coerced)

        errors = updated.validate()
        if errors:
            raise SettingsValidationError(errors)

        self._write(updated)
        logger.info(f"[설정] 변경: {sorted(changes)}")
        return updated

    def reset_to_defaults(self) -> CalculationSettings:
        """기본값으로 초기화 (마지막 실행 통계는 유지)"""
        current = self.ensure_defaults()
        reset = CalculationSettings.defaults().replace(
            **{name: getattr(current, name) for name in _STATS_FIELDS}
        )
        self._write(reset)
        logger.info("[설정] 기본값으로 초기화")
        return reset

    def update_calculation_stats(
        self,
        associations_count: int,
        duration_ms: int,
        calculated_at: Optional[datetime] = None,
    ) -> CalculationSettings:
        """계산 실행 후 통계 기록"""
        current = self.ensure_defaults()
        updated = current.replace(
            last_calculation=calculated_at or datetime.now(),
            last_calculation_duration_ms=int(duration_ms),
            last_calculation_associations_count=int(associations_count),
        )
        self._write(updated)
        return updated

    # -----------------------------------------------------------------
    # 내부
    # -----------------------------------------------------------------

    def _load(self) -> Optional[CalculationSettings]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM association_settings WHERE id = 1").fetchone()
        finally:
            conn.close()

        if row is None:
            return None

        data = dict(row)
        values: Dict[str, Any] = {}
        for name in CalculationSettings.field_names():
            values[name] = self._coerce(name, data.get(name))
        return CalculationSettings(**values)

    def _write(self, settings: CalculationSettings, insert: bool = False) -> None:
        data = settings.to_dict()
        if data["last_calculation"] is not None:
            data["last_calculation"] = data["last_calculation"].isoformat()
        for name in _BOOL_FIELDS:
            data[name] = int(bool(data[name]))

        columns = list(data)
        now = self._now()
        conn = self._get_conn()
        try:
            if insert:
                conn.execute(
                    f"""
                    INSERT OR IGNORE INTO association_settings
                    (id, {", ".join(columns)}, created_at, updated_at)
                    VALUES (1, {", ".join("?" for _ in columns)}, ?, ?)
                    """,
                    [data[c] for c in columns] + [now, now],
                )
            else:
                conn.execute(
                    f"""
                    UPDATE association_settings
                    SET {", ".join(f"{c} = ?" for c in columns)}, updated_at = ?
                    WHERE id = 1
                    """,
                    [data[c] for c in columns] + [now],
                )
            conn.commit()
        finally:
            conn.close()

    def _coerce(self, name: str, value: Any) -> Any:
        """DB/CLI 값을 설정 필드 타입으로 변환"""
        if value is None:
            return None
        if name in _BOOL_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
        if name == "last_calculation":
            return self._to_datetime(value)
        return str(value)
