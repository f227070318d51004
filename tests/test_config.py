"""
Tests for trendlens.config.

Covers:
    - Section defaults (limits, search, cache, batch)
    - Settings.from_yaml: missing file, partial file, unknown keys, bad YAML
    - Environment variable overrides
    - Settings.validate range checks
    - validate_env
"""

import pytest

from trendlens.config import (
    CacheConfig,
    LimitsConfig,
    SearchConfig,
    Settings,
    validate_env,
)
from trendlens.exceptions import ConfigurationError
from trendlens.strategy import BatchThresholds


# ===========================================================================
# 1. Defaults
# ===========================================================================


class TestDefaults:
    def test_limits(self):
        limits = LimitsConfig()
        assert limits.max_keywords == 10
        assert (limits.min_results_per_keyword, limits.max_results_per_keyword) == (1, 10)
        assert limits.default_results_per_keyword == 3
        assert limits.default_cache_duration_hours == 2

    def test_search(self):
        search = SearchConfig()
        assert search.model == "gpt-4o-mini"
        assert search.keyword_timeout_seconds == 25.0
        assert search.batch_timeout_seconds == 45.0

    def test_cache(self):
        cache = CacheConfig()
        assert cache.backend == "memory"
        assert cache.key_prefix == "trending:"

    def test_batch_thresholds(self):
        assert Settings().batch == BatchThresholds()

    def test_default_ttl_is_two_hours(self):
        assert Settings().default_ttl_seconds == 7200


# ===========================================================================
# 2. from_yaml
# ===========================================================================


class TestFromYaml:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = Settings.from_yaml(tmp_path / "absent.yaml")
        assert settings == Settings()

    def test_partial_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "limits:\n"
            "  max_keywords: 5\n"
            "cache:\n"
            "  backend: redis\n"
            "  redis_url: redis://cache:6379/1\n"
            "batch:\n"
            "  max_total_topics: 8\n"
            "log_level: DEBUG\n",
            encoding="utf-8",
        )

        settings = Settings.from_yaml(path)

        assert settings.limits.max_keywords == 5
        assert settings.limits.default_results_per_keyword == 3
        assert settings.cache.backend == "redis"
        assert settings.cache.redis_url == "redis://cache:6379/1"
        assert settings.batch.max_total_topics == 8
        assert settings.log_level == "DEBUG"

    def test_unknown_keys_are_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("search:\n  model: gpt-4o\n  temperature: 0.2\n", encoding="utf-8")

        assert Settings.from_yaml(path).search.model == "gpt-4o"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("limits: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to parse"):
            Settings.from_yaml(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            Settings.from_yaml(path)

    def test_out_of_range_value_is_rejected(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("limits:\n  default_results_per_keyword: 20\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings.from_yaml(path)


# ===========================================================================
# 3. Environment overrides
# ===========================================================================


class TestEnvOverrides:
    def test_env_beats_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("search:\n  model: gpt-4o\n", encoding="utf-8")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1-mini")
        monkeypatch.setenv("CACHE_DURATION_HOURS", "6")
        monkeypatch.setenv("KEYWORD_TIMEOUT_SECONDS", "12.5")

        settings = Settings.from_yaml(path)

        assert settings.search.model == "gpt-4.1-mini"
        assert settings.default_ttl_seconds == 6 * 3600
        assert settings.search.keyword_timeout_seconds == 12.5

    def test_top_level_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
        assert Settings.from_yaml(tmp_path / "absent.yaml").log_dir == str(tmp_path / "logs")

    def test_bad_env_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MAX_KEYWORDS", "lots")

        with pytest.raises(ConfigurationError, match="MAX_KEYWORDS"):
            Settings.from_yaml(tmp_path / "absent.yaml")


# ===========================================================================
# 4. validate()
# ===========================================================================


class TestValidate:
    def test_defaults_are_valid(self):
        settings = Settings()
        assert settings.validate() is settings

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda s: setattr(s.limits, "max_keywords", 0),
            lambda s: setattr(s.limits, "min_results_per_keyword", 0),
            lambda s: setattr(s.limits, "min_results_per_keyword", 11),
            lambda s: setattr(s.limits, "default_cache_duration_hours", 0),
            lambda s: setattr(s.search, "batch_timeout_seconds", 0),
            lambda s: setattr(s.cache, "backend", "memcached"),
        ],
    )
    def test_rejects_out_of_range(self, mutate):
        settings = Settings()
        mutate(settings)
        with pytest.raises(ConfigurationError):
            settings.validate()


# ===========================================================================
# 5. validate_env
# ===========================================================================


class TestValidateEnv:
    def test_missing_key_strict(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            validate_env(strict=True)

    def test_missing_key_lenient(self):
        status = validate_env(strict=False)
        assert status["OPENAI_API_KEY"] is False
        assert status["REDIS_URL"] is False

    def test_present_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert validate_env(strict=True)["OPENAI_API_KEY"] is True
