"""Tests for settings."""

import json

from brokerstat.core.config import DEFAULT_SETTINGS, Settings


class TestSettings:
    """Tests for Settings loading and saving."""

    def test_defaults(self):
        settings = Settings()

        assert settings.analysis.currencies == ["USD", "RUB"]
        assert settings.analysis.lower_rate == -0.99
        assert settings.analysis.upper_rate == 10.0
        assert settings.analysis.tolerance == 1e-6
        assert settings.analysis.max_iterations == 200
        assert settings.rates.max_lookback_days == 7
        assert settings.display.rate_decimal_places == 1

    def test_load_without_config_dir(self):
        assert Settings.load().analysis.currencies == ["USD", "RUB"]

    def test_load_missing_file(self, tmp_path):
        assert Settings.load(tmp_path).rates.max_lookback_days == 7

    def test_load_merges_with_defaults(self, tmp_path):
        """Test user settings override only the keys they name."""
        (tmp_path / "settings.json").write_text(
            json.dumps({"analysis": {"currencies": ["eur"], "upper_rate": 5}}),
            encoding="utf-8",
        )

        settings = Settings.load(tmp_path)

        assert settings.analysis.currencies == ["EUR"]
        assert settings.analysis.upper_rate == 5.0
        assert settings.analysis.lower_rate == -0.99
        assert settings.display.rate_decimal_places == 1

    def test_load_invalid_json(self, tmp_path, caplog):
        (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

        settings = Settings.load(tmp_path)

        assert settings.analysis.max_iterations == 200
        assert "Failed to load settings" in caplog.text

    def test_save_and_load(self, tmp_path):
        config_dir = tmp_path / "config"
        Settings({"display": {"rate_decimal_places": 2}}).save(config_dir)

        settings = Settings.load(config_dir)

        assert settings.display.rate_decimal_places == 2
        assert settings.analysis.currencies == ["USD", "RUB"]

    def test_defaults_are_not_shared(self):
        settings = Settings()
        settings._raw["analysis"]["currencies"].append("EUR")

        assert DEFAULT_SETTINGS["analysis"]["currencies"] == ["USD", "RUB"]
