"""
연관 계산 설정 (CalculationSettings / AssociationSettingsRepository) 테스트
"""

from datetime import datetime

import pytest

from fbt.domain.errors import SettingsValidationError
from fbt.domain.models import CalculationSettings, DisplayContext
from fbt.infrastructure.database.repos import AssociationSettingsRepository
from fbt.settings.constants import DEFAULT_SETTINGS


@pytest.mark.unit
class TestCalculationSettings:

    def test_defaults(self):
        s = CalculationSettings.defaults()

        assert s.enabled is False
        assert s.analysis_time_window_days == 90
        assert s.min_cooccurrence_threshold == 5
        assert s.min_score_threshold == 0.3
        assert s.max_recommendations_per_product == 4
        assert (s.frequency_weight, s.recency_weight, s.value_weight) == (0.5, 0.3, 0.2)
        assert s.pdp_related_section and s.pdp_under_add_to_cart and s.cart_page
        assert s.checkout_page is False
        assert s.fallback_to_related_products is True
        assert s.validate() == []

    def test_defaults_match_constants(self):
        assert CalculationSettings() == CalculationSettings.defaults()
        assert set(DEFAULT_SETTINGS) <= set(CalculationSettings.field_names())

    @pytest.mark.parametrize("changes, message", [
        ({"analysis_time_window_days": 0}, "Analysis time window must be at least 1 day"),
        ({"analysis_time_window_days": 366}, "Analysis time window cannot exceed 365 days"),
        ({"min_cooccurrence_threshold": 0}, "Minimum cooccurrence threshold must be at least 1"),
        ({"min_score_threshold": 1.5}, "Minimum score threshold must be between 0 and 1"),
        ({"max_recommendations_per_product": 0}, "Maximum recommendations must be at least 1"),
        ({"frequency_weight": 0.6}, "Scoring weights must sum to 1.0"),
        ({"recency_weight": -0.1, "frequency_weight": 0.9}, "Recency weight must be between 0 and 1"),
        ({"job_schedule": ""}, "Job schedule cannot be empty"),
        ({"job_schedule": "0 2 * * *"}, "Job schedule must be a HH:MM time"),
    ])
    def test_validation_messages(self, changes, message):
        errors = CalculationSettings.defaults().replace(**changes).validate()
        assert message in errors

    def test_weight_sum_tolerance(self):
        s = CalculationSettings.defaults().replace(frequency_weight=0.505)
        assert s.validate() == []

    def test_location_toggles(self):
        s = CalculationSettings.defaults().replace(checkout_page=True, cart_page=False)

        assert s.is_location_enabled(DisplayContext.CHECKOUT) is True
        assert s.is_location_enabled(DisplayContext.CART) is False
        assert s.is_location_enabled(DisplayContext.PDP_RELATED) is True


@pytest.mark.db
class TestAssociationSettingsRepository:

    @pytest.fixture
    def repo(self, db_path):
        return AssociationSettingsRepository(db_path=db_path)

    def test_get_settings_without_row_does_not_write(self, repo):
        assert repo.get_settings() == CalculationSettings.defaults()
        assert repo._load() is None

    def test_ensure_defaults_creates_row_once(self, repo):
        created = repo.ensure_defaults()
        repo.update_settings(min_score_threshold=0.5)

        again = repo.ensure_defaults()

        assert created == CalculationSettings.defaults()
        assert again.min_score_threshold == 0.5

    def test_update_persists(self, repo, db_path):
        repo.update_settings(enabled=True, min_cooccurrence_threshold=3)

        reloaded = AssociationSettingsRepository(db_path=db_path).get_settings()
        assert reloaded.enabled is True
        assert reloaded.min_cooccurrence_threshold == 3

    def test_update_coerces_strings(self, repo):
        updated = repo.update_settings(
            enabled="true", analysis_time_window_days="30", min_score_threshold="0.25",
        )

        assert updated.enabled is True
        assert updated.analysis_time_window_days == 30
        assert updated.min_score_threshold == 0.25

    def test_invalid_update_rejected(self, repo):
        with pytest.raises(SettingsValidationError) as exc_info:
            repo.update_settings(frequency_weight=0.9)

        assert "Scoring weights must sum to 1.0" in exc_info.value.errors
        assert str(exc_info.value).startswith("Invalid settings:")
        assert repo.get_settings().frequency_weight == 0.5

    def test_unknown_key_rejected(self, repo):
        with pytest.raises(SettingsValidationError):
            repo.update_settings(colour="blue")

    def test_stats_fields_not_user_editable(self, repo):
        with pytest.raises(SettingsValidationError):
            repo.update_settings(last_calculation_associations_count=10)

    def test_bad_number_rejected(self, repo):
        with pytest.raises(SettingsValidationError):
            repo.update_settings(analysis_time_window_days="ninety")

    def test_calculation_stats(self, repo):
        at = datetime(2026, 3, 1, 2, 0, 5)
        repo.update_calculation_stats(associations_count=120, duration_ms=850, calculated_at=at)

        s = repo.get_settings()
        assert s.last_calculation == at
        assert s.last_calculation_duration_ms == 850
        assert s.last_calculation_associations_count == 120

    def test_reset_keeps_run_stats(self, repo):
        repo.update_settings(enabled=True, max_recommendations_per_product=8)
        repo.update_calculation_stats(associations_count=7, duration_ms=12)

        reset = repo.reset_to_defaults()

        assert reset.enabled is False
        assert reset.max_recommendations_per_product == 4
        assert reset.last_calculation_associations_count == 7
        assert repo.get_settings() == reset
