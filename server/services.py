"""
Service container shared by the HTTP endpoints.

Holds one pattern store, one compression engine per confidence mode (all
sharing that store), the confidence system and the miss curation service.
"""

import logging
from typing import Dict, Optional

from core.confidence import CONFIDENCE_MODES, ConfidenceSystem
from core.engine import CompressionEngine, create_pattern_store
from core.engine_config import EngineConfig
from core.errors import ValidationError
from core.miss_tracking import MissTrackingService
from core.pattern_store import PatternStore

logger = logging.getLogger(__name__)


class PithyServices:
    """Engines and admin services bound to a single pattern store."""

    def __init__(self, engine_config: Optional[EngineConfig] = None, store: Optional[PatternStore] = None,
                 server_config=None):
        self.engine_config = engine_config or EngineConfig()
        self.server_config = server_config
        self.store = store or create_pattern_store(self.engine_config)
        self.engines: Dict[str, CompressionEngine] = {}
        self.confidence = ConfidenceSystem(self.store)
        self.misses = MissTrackingService(self.store)

    @property
    def default_mode(self) -> str:
        return self.engine_config.mode

    def get_engine(self, mode: Optional[str] = None) -> CompressionEngine:
        """Engine for ``mode``, created on first use."""
        mode = mode or self.default_mode
        if mode not in CONFIDENCE_MODES:
            raise ValidationError(f"Unknown confidence mode '{mode}'")
        if mode not in self.engines:
            self.engines[mode] = CompressionEngine(self.store, mode=mode, config=self.engine_config)
            logger.info(f"🔧 Created compression engine for '{mode}' mode")
        return self.engines[mode]

    def cache_size(self) -> int:
        return sum(len(engine.cache) for engine in self.engines.values())

    def clear_caches(self) -> int:
        return sum(engine.clear_cache() for engine in self.engines.values())

    async def close(self):
        await self.store.close()
