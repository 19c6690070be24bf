"""
Tests for session configuration and process settings.
"""

import pytest
from pydantic import ValidationError

from iqcat.core.config import CATConfig, Settings, load_config
from iqcat.core.exceptions import InvalidConfigurationError
from iqcat.domain_types import QuestionCategory, SelectionMethod


class TestCATConfigDefaults:
    def test_defaults(self):
        config = CATConfig()
        assert config.total_questions == 30
        assert config.target_standard_error == 0.30
        assert config.max_standard_error == 0.50
        assert config.selection_method == SelectionMethod.MAX_INFO
        assert config.exposure_control is False
        assert config.content_balancing is True
        assert config.prior_sd == 1.0

    def test_frozen(self):
        config = CATConfig()
        with pytest.raises(ValidationError):
            config.total_questions = 10

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            CATConfig(max_questions=10)

    def test_selection_method_from_string(self):
        assert CATConfig(selection_method="Hybrid").selection_method == SelectionMethod.HYBRID


class TestLoadConfig:
    """Tests for validation through load_config."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"total_questions": 0},
            {"target_standard_error": 0.0},
            {"prior_variance": -1.0},
            {"global_time_limit_seconds": 0},
            {"question_time_limit_seconds": -5},
            {"randomesque_k": 0},
            {"time_weight_factor": 1.5},
            {"min_ability": 1.0, "max_ability": 0.5},
            {"starting_ability": 5.0},
            {"target_standard_error": 0.6, "max_standard_error": 0.5},
            {"min_ability": -5.0},
        ],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            load_config(**overrides)
        assert isinstance(exc_info.value.original_error, ValidationError)
        assert exc_info.value.context["fields"]

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            load_config(total_questions=-3)

    def test_domain_weights(self):
        weights = {
            QuestionCategory.PATTERN_RECOGNITION: 0.6,
            QuestionCategory.SPATIAL_REASONING: 0.4,
        }
        assert load_config(domain_weights=weights).domain_weights == weights

    @pytest.mark.parametrize(
        "weights",
        [
            {QuestionCategory.PATTERN_RECOGNITION: 0.5},
            {QuestionCategory.PATTERN_RECOGNITION: 1.2, QuestionCategory.SPATIAL_REASONING: -0.2},
        ],
    )
    def test_rejects_bad_domain_weights(self, weights):
        with pytest.raises(InvalidConfigurationError):
            load_config(domain_weights=weights)


class TestSettings:
    """Tests for environment-backed settings."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("IQCAT_CAT_TOTAL_QUESTIONS", "20")
        monkeypatch.setenv("IQCAT_CAT_SELECTION_METHOD", "Bayesian")
        monkeypatch.setenv("IQCAT_LOG_LEVEL", "DEBUG")
        source = Settings(_env_file=None)
        assert source.CAT_TOTAL_QUESTIONS == 20
        assert source.CAT_SELECTION_METHOD == SelectionMethod.BAYESIAN
        assert source.LOG_LEVEL == "DEBUG"

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("IQCAT_CAT_TOTAL_QUESTIONS", "12")
        monkeypatch.setenv("IQCAT_CAT_EXPOSURE_CONTROL", "true")
        config = CATConfig.from_settings(Settings(_env_file=None))
        assert config.total_questions == 12
        assert config.exposure_control is True
        assert config.question_time_limit_seconds == 60.0

    def test_default_settings_match_config_defaults(self):
        assert CATConfig.from_settings(Settings(_env_file=None)) == CATConfig()

    def test_from_settings_overrides(self):
        config = CATConfig.from_settings(Settings(_env_file=None), total_questions=5, random_seed=9)
        assert config.total_questions == 5
        assert config.random_seed == 9

    def test_from_settings_validates(self, monkeypatch):
        monkeypatch.setenv("IQCAT_CAT_TARGET_STANDARD_ERROR", "0.9")
        with pytest.raises(InvalidConfigurationError):
            CATConfig.from_settings(Settings(_env_file=None))
