"""Settings management for brokerstat.

Provides data-driven configuration with sensible defaults.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"

# Default settings (used when nothing is configured)
DEFAULT_SETTINGS = {
    "$schema": "brokerstat_settings_v1",
    "version": "1.0",

    "analysis": {
        "currencies": ["USD", "RUB"],
        "lower_rate": -0.99,  # -99% a year
        "upper_rate": 10.0,   # +1000% a year
        "tolerance": 1e-6,
        "max_iterations": 200
    },

    "rates": {
        "max_lookback_days": 7
    },

    "display": {
        "rate_decimal_places": 1
    }
}


@dataclass
class AnalysisConfig:
    """Configuration for portfolio performance analysis."""
    currencies: List[str] = field(default_factory=lambda: ["USD", "RUB"])
    lower_rate: float = -0.99
    upper_rate: float = 10.0
    tolerance: float = 1e-6
    max_iterations: int = 200


@dataclass
class RatesConfig:
    """Configuration for stored exchange rate lookup."""
    max_lookback_days: int = 7  # Weekends and holidays have no rates


@dataclass
class DisplayConfig:
    """Configuration for display formatting."""
    rate_decimal_places: int = 1


class Settings:
    """
    brokerstat settings.

    Loads from <config_dir>/settings.json with fallback to defaults.

    Usage:
        settings = Settings.load(Path("~/.brokerstat").expanduser())
        for currency in settings.analysis.currencies:
            ...
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """Initialize from settings dictionary."""
        data = data if data is not None else copy.deepcopy(DEFAULT_SETTINGS)
        self._raw = data

        analysis = data.get("analysis", {})
        self.analysis = AnalysisConfig(
            currencies=[currency.upper() for currency in analysis.get("currencies", ["USD", "RUB"])],
            lower_rate=float(analysis.get("lower_rate", -0.99)),
            upper_rate=float(analysis.get("upper_rate", 10.0)),
            tolerance=float(analysis.get("tolerance", 1e-6)),
            max_iterations=int(analysis.get("max_iterations", 200))
        )

        rates = data.get("rates", {})
        self.rates = RatesConfig(
            max_lookback_days=int(rates.get("max_lookback_days", 7))
        )

        display = data.get("display", {})
        self.display = DisplayConfig(
            rate_decimal_places=int(display.get("rate_decimal_places", 1))
        )

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "Settings":
        """
        Load settings with fallback to defaults.

        Args:
            config_dir: Directory holding settings.json (optional)

        Returns:
            Settings instance
        """
        data = copy.deepcopy(DEFAULT_SETTINGS)

        if config_dir:
            settings_file = Path(config_dir) / SETTINGS_FILE
            if settings_file.exists():
                try:
                    with open(settings_file, encoding='utf-8') as f:
                        user_data = json.load(f)
                    data = cls._deep_merge(data, user_data)
                    logger.debug(f"Loaded settings from {settings_file}")
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Failed to load settings from {settings_file}: {e}")

        return cls(data)

    @staticmethod
    def _deep_merge(base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries, override takes precedence."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = Settings._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def save(self, config_dir: Path) -> None:
        """Save current settings to config_dir."""
        config_dir = Path(config_dir)
        config_dir.mkdir(parents=True, exist_ok=True)
        settings_file = config_dir / SETTINGS_FILE

        with open(settings_file, 'w', encoding='utf-8') as f:
            json.dump(self._raw, f, indent=2)

        logger.info(f"Saved settings to {settings_file}")
