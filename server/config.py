"""
Configuration module for the Pithy server.
Contains the ServerConfig class and related configuration functionality.
"""

import os
import logging
from datetime import datetime
import pathlib
import sys

# Add parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.jsonc_parser import load_jsonc
from core.engine_config import EngineConfig

from server.logging_utils import (
    log_config_message, flush_config_message_buffer, log_startup_messages
)

SERVER_CONFIG_PATH = pathlib.Path(__file__).parents[1] / "config" / "server.jsonc"


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ['true', '1', 'yes', 'on']
    return bool(value)


class ServerConfig:
    """Configuration for the Pithy compression service."""
    def __init__(self, config_path: pathlib.Path = None, engine_config: EngineConfig = None):
        self.config_path = pathlib.Path(config_path) if config_path else SERVER_CONFIG_PATH
        config_data = self._load_server_config()

        # EARLY SETUP: Initialize file logging first to capture all startup messages
        self._early_setup_logging(config_data)
        log_startup_messages()

        # Set values with priority: env vars > config file > defaults
        self.port = int(os.environ.get("PITHY_PORT", config_data.get("port", 5010)))
        self.host = os.environ.get("PITHY_HOST", config_data.get("host", "0.0.0.0"))

        self.engine_config = engine_config or EngineConfig()

        # ──────────────────────────────────────────────────────────────────────────────
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message("🌐 SERVER")
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message(f"🌐 Listening on:                 {self.host}:{self.port}")

        engine = self.engine_config
        # ──────────────────────────────────────────────────────────────────────────────
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message("🗜️  COMPRESSION CONFIGURATION")
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message(f"🎯 Default mode:                 {engine.mode}")
        log_config_message(f"📐 Max phrase window:            {engine.max_phrase_window} words")
        log_config_message(f"📏 Max text length:              {engine.max_text_length} chars")
        log_config_message(f"❓ Pass 0 min confidence:        {engine.pass0_min_confidence}")
        log_config_message(f"💾 Result cache:                 {'Enabled' if engine.cache_enabled else 'Disabled'}"
                           f" (max {engine.cache_max_entries or 'unbounded'})")
        log_config_message(f"📊 Miss tracking:                {'Enabled' if engine.miss_tracking_enabled else 'Disabled'}")

        # ──────────────────────────────────────────────────────────────────────────────
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message("🗄️  PATTERN STORE")
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message(f"🗄️  Backend:                      {engine.store_backend}")
        if engine.store_backend == "supabase":
            log_config_message(f"🔗 Supabase URL:                 {engine.supabase_url or '(missing)'}")
            log_config_message(f"🔑 Supabase key:                 {'Set' if engine.supabase_key else '(missing)'}")
            log_config_message(f"⏱️  Request timeout:              {engine.store_timeout}s")
        else:
            log_config_message(f"🌱 Seed file:                    {engine.seed_file}")

        # ──────────────────────────────────────────────────────────────────────────────
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message("📊 LOGGING CONFIGURATION")
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message(f"📝 File logging:                 {'Enabled' if self.file_logging else 'Disabled'}")
        log_config_message(f"📺 Console log level:            {self.log_level}")
        if self.file_logging:
            log_config_message(f"📁 File log level:               {self.file_log_level}")
            log_config_message(f"📁 Log file:                     {self.log_file_path}")
        if self.log_level == "DEBUG" and self.debug_categories:
            enabled_categories = [name for name, enabled in self.debug_categories.items() if enabled]
            log_config_message(f"🎯 Debug categories enabled:     {len(enabled_categories)}/{len(self.debug_categories)}")

    def _load_server_config(self) -> dict:
        if not self.config_path.exists():
            return {}
        try:
            return load_jsonc(str(self.config_path))
        except Exception as e:
            log_config_message(f"❌ Error loading config from {self.config_path}: {e}", "ERROR")
            return {}

    def setup_file_logging(self):
        """Setup file logging with datetime-based filenames."""
        log_dir = pathlib.Path(__file__).parents[1] / "logs"
        log_dir.mkdir(exist_ok=True)

        now = datetime.now()
        log_path = log_dir / f"pithy_{now.strftime('%Y%m%d_%H%M%S')}.log"

        # Root logger uses the lower of the two levels so both handlers receive their records
        min_level = min(
            getattr(logging, self.log_level, logging.INFO),
            getattr(logging, self.file_log_level, logging.INFO)
        )
        root_logger = logging.getLogger()
        root_logger.setLevel(min_level)
        root_logger.handlers.clear()

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(getattr(logging, self.file_log_level, logging.INFO))
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)-16s - %(levelname)s - %(message)s'))

        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, self.log_level, logging.INFO))
        console_handler.setFormatter(self._console_formatter())

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        self.logger = logging.getLogger('pithy')
        self.logger.setLevel(min_level)
        self.log_file_path = log_path

        flush_config_message_buffer()

    def _console_formatter(self) -> logging.Formatter:
        if self.simplify_terminal_output:
            return logging.Formatter('%(levelname)-5s - %(message)s')
        return logging.Formatter('%(asctime)s - %(name)-16s - %(levelname)s - %(message)s')

    def _early_setup_logging(self, config_data: dict):
        """Early logging setup to capture startup messages."""
        logging_config = config_data.get("logging", {})
        self.logging_config = logging_config

        self.file_logging = _as_bool(os.environ.get("PITHY_FILE_LOGGING", logging_config.get("file_logging", False)))
        self.log_level = os.environ.get("PITHY_LOG_LEVEL", logging_config.get("log_level", "INFO")).upper()
        self.file_log_level = logging_config.get("file_log_level", self.log_level).upper()
        self.simplify_terminal_output = logging_config.get("simplify_terminal_output", False)
        self.debug_categories = logging_config.get("debug_categories", {})
        self.log_file_path = None
        self.logger = logging.getLogger('pithy')

        if self.file_logging:
            self.setup_file_logging()
        else:
            root_logger = logging.getLogger()
            if not root_logger.handlers:
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(self._console_formatter())
                root_logger.addHandler(console_handler)
            root_logger.setLevel(getattr(logging, self.log_level, logging.INFO))

    def is_debug_category_enabled(self, category: str) -> bool:
        """
        Check if a specific debug category is enabled.

        Args:
            category: The debug category name to check

        Returns:
            True if the category is enabled (or if no categories are configured),
            False if explicitly disabled
        """
        if not self.debug_categories:
            return True
        return self.debug_categories.get(category, True)
