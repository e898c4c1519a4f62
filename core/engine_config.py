"""
Engine configuration.

Values come from ``config/config.jsonc`` with priority
env vars > config file > defaults.
"""

import logging
import os
import pathlib
from typing import Any, Dict, Optional

from utils.jsonc_parser import load_jsonc

from .confidence import CONFIDENCE_MODES
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path(__file__).parents[1] / "config" / "config.jsonc"
DEFAULT_SEED_FILE = pathlib.Path(__file__).parents[1] / "config" / "seed_patterns.jsonc"

STORE_BACKENDS = ("memory", "supabase")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ['true', '1', 'yes', 'on']
    return bool(value)


class EngineConfig:
    """Settings for the compression engine and its pattern store."""

    def __init__(self, config_data: Optional[Dict[str, Any]] = None,
                 config_path: Optional[pathlib.Path] = None):
        """
        Args:
            config_data: Already-parsed configuration; skips reading the file
            config_path: Alternative location of config.jsonc
        """
        if config_data is None:
            config_data = self._load_file(pathlib.Path(config_path) if config_path else DEFAULT_CONFIG_PATH)
        self.raw = config_data

        compression = config_data.get("compression", {})
        self.mode = os.environ.get("PITHY_MODE", compression.get("mode", "default"))
        if self.mode not in CONFIDENCE_MODES:
            raise ValidationError(f"Invalid compression mode '{self.mode}'")
        self.max_phrase_window = int(compression.get("max_phrase_window", 6))
        self.max_text_length = int(compression.get("max_text_length", 10000))
        self.pass0_min_confidence = float(compression.get("pass0_min_confidence", 0.70))

        cache = config_data.get("cache", {})
        self.cache_enabled = _as_bool(cache.get("enabled", True))
        self.cache_max_entries = int(os.environ.get("PITHY_CACHE_MAX_ENTRIES", cache.get("max_entries", 1000)))

        misses = config_data.get("miss_tracking", {})
        self.miss_tracking_enabled = _as_bool(misses.get("enabled", True))
        self.require_high_value_words = _as_bool(misses.get("require_high_value_words", True))

        store = config_data.get("pattern_store", {})
        self.store_backend = os.environ.get("PITHY_STORE_BACKEND", store.get("backend", "memory"))
        if self.store_backend not in STORE_BACKENDS:
            raise ValidationError(f"Invalid pattern store backend '{self.store_backend}'")
        self.seed_file = os.environ.get("PITHY_SEED_FILE", store.get("seed_file") or str(DEFAULT_SEED_FILE))
        if not os.path.isabs(self.seed_file):
            self.seed_file = str(DEFAULT_CONFIG_PATH.parents[1] / self.seed_file)
        self.supabase_url = os.environ.get("SUPABASE_URL", store.get("supabase_url", ""))
        self.supabase_key = os.environ.get("SUPABASE_KEY", store.get("supabase_key", ""))
        self.store_timeout = float(store.get("timeout", 10))

    @staticmethod
    def _load_file(config_path: pathlib.Path) -> Dict[str, Any]:
        if not config_path.exists():
            logger.warning(f"⚠️ Engine config not found at {config_path}, using defaults")
            return {}
        try:
            data = load_jsonc(str(config_path))
            logger.info(f"📋 Loaded engine configuration from {config_path}")
            return data
        except Exception as e:
            logger.error(f"❌ Error loading engine config from {config_path}: {e}")
            return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "max_phrase_window": self.max_phrase_window,
            "max_text_length": self.max_text_length,
            "pass0_min_confidence": self.pass0_min_confidence,
            "cache_enabled": self.cache_enabled,
            "cache_max_entries": self.cache_max_entries,
            "miss_tracking_enabled": self.miss_tracking_enabled,
            "require_high_value_words": self.require_high_value_words,
            "store_backend": self.store_backend,
            "seed_file": self.seed_file,
            "supabase_url": self.supabase_url,
            "store_timeout": self.store_timeout,
        }
