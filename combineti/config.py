"""Configuration management with validation and typed access"""

import json
import logging
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from combineti.api_clients.sportsdata_client import SportsDataConfig
from combineti.utils.errors import ConfigError

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS


# ============================================================================
# CONFIGURATION DATACLASSES
# ============================================================================

@dataclass
class GeminiConfig:
    """Configuration for the Gemini prediction service"""

    api_key: Optional[str] = None
    model: str = "gemini-1.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: int = 60
    max_retries: int = 2

    def validate(self) -> None:
        if not self.model:
            raise ValueError("model name cannot be empty")
        if not self.base_url:
            raise ValueError("base_url cannot be empty")
        if self.timeout < 1:
            raise ValueError(f"timeout must be >= 1, got {self.timeout}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")


@dataclass
class CacheConfig:
    """Freshness windows per data category and the backing database file"""

    db_path: str = "combineti.sqlite"
    dynamic_ttl_ms: int = 5 * MINUTE_MS  # Fixtures and scores
    static_ttl_ms: int = DAY_MS  # Rosters and injuries

    def validate(self) -> None:
        if not self.db_path:
            raise ValueError("db_path cannot be empty")
        if self.dynamic_ttl_ms <= 0:
            raise ValueError(f"dynamic_ttl_ms must be > 0, got {self.dynamic_ttl_ms}")
        if self.static_ttl_ms <= 0:
            raise ValueError(f"static_ttl_ms must be > 0, got {self.static_ttl_ms}")


@dataclass
class OrchestratorConfig:
    """Load-cycle tuning"""

    max_concurrency: int = 4  # Matches enriched at the same time

    def validate(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")


# ============================================================================
# MAIN CONFIG MANAGER
# ============================================================================

class ConfigManager:
    """
    Central configuration management with validation and typed access

    Values come from an optional JSON file; API keys are read from the
    environment (``SPORTS_API_KEY``, ``GEMINI_API_KEY``, also loaded from
    a ``.env`` file) before falling back to the JSON file.
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Load and validate configuration from JSON file

        Args:
            config_file: Path to config JSON file (missing file -> defaults)

        Raises:
            json.JSONDecodeError: If config file is invalid JSON
            ConfigError: If configuration validation fails
        """
        load_dotenv()

        self.config_path = Path(config_file) if config_file else None

        if self.config_path is None or not self.config_path.exists():
            if self.config_path is not None:
                logger.warning(f"Config file not found: {config_file}. Using defaults and environment variables.")
            raw_config = {}
        else:
            with open(self.config_path) as f:
                raw_config = json.load(f)

        self._parse_config(raw_config)

    def _get_secret(self, env_var: str, json_value: Optional[str] = None) -> Optional[str]:
        """
        Get secret from environment variable, falling back to JSON value.
        Filters out placeholder values containing 'YOUR_'.
        """
        val = os.getenv(env_var)
        if not val:
            val = json_value

        if val and isinstance(val, str) and 'YOUR_' in val:
            return None
        return val

    def _validate_section(self, name: str, section) -> None:
        try:
            section.validate()
        except ValueError as e:
            raise ConfigError(f"Invalid {name} config: {e}", config_key=name) from e

    def _parse_config(self, raw_config: Dict[str, Any]) -> None:
        """Parse raw JSON config into typed dataclasses"""

        sports_raw = raw_config.get('sportsdata', {})
        defaults = SportsDataConfig()
        self.sportsdata = SportsDataConfig(
            api_key=self._get_secret('SPORTS_API_KEY', sports_raw.get('api_key')),
            scores_base_url=sports_raw.get('scores_base_url', defaults.scores_base_url),
            projections_base_url=sports_raw.get('projections_base_url', defaults.projections_base_url),
            competition_id=sports_raw.get('competition_id', defaults.competition_id),
            competition_name=sports_raw.get('competition_name', defaults.competition_name),
            timeout=sports_raw.get('timeout', defaults.timeout),
            max_retries=sports_raw.get('max_retries', defaults.max_retries),
            backoff_base=sports_raw.get('backoff_base', defaults.backoff_base),
        )
        self._validate_section('sportsdata', self.sportsdata)

        gemini_raw = raw_config.get('gemini', {})
        self.gemini = GeminiConfig(
            api_key=self._get_secret('GEMINI_API_KEY', gemini_raw.get('api_key')),
            model=gemini_raw.get('model', 'gemini-1.5-flash'),
            base_url=gemini_raw.get('base_url', GeminiConfig.base_url),
            timeout=gemini_raw.get('timeout', 60),
            max_retries=gemini_raw.get('max_retries', 2),
        )
        self._validate_section('gemini', self.gemini)

        cache_raw = raw_config.get('cache', {})
        self.cache = CacheConfig(
            db_path=cache_raw.get('db_path', 'combineti.sqlite'),
            dynamic_ttl_ms=cache_raw.get('dynamic_ttl_ms', 5 * MINUTE_MS),
            static_ttl_ms=cache_raw.get('static_ttl_ms', DAY_MS),
        )
        self._validate_section('cache', self.cache)

        orchestrator_raw = raw_config.get('orchestrator', {})
        self.orchestrator = OrchestratorConfig(
            max_concurrency=orchestrator_raw.get('max_concurrency', 4),
        )
        self._validate_section('orchestrator', self.orchestrator)

        if not self.gemini.api_key:
            logger.warning("GEMINI_API_KEY is not set. Predictions will not be generated.")

        logger.info(f"✅ Configuration loaded and validated from {self.config_path or 'defaults'}")

    # ========================================================================
    # CONVENIENCE PROPERTIES
    # ========================================================================

    @property
    def predictions_enabled(self) -> bool:
        return bool(self.gemini.api_key)

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def validate_for_mode(self, mode: str) -> None:
        """
        Strict validation of required keys for a CLI command.

        Args:
            mode: 'matches', 'history' or 'cache'

        Raises:
            ConfigError: If required configuration for the mode is missing
        """
        logger.debug(f"Validating configuration for mode: {mode}")
        if mode == 'matches' and not self.sportsdata.api_key:
            # Predictions degrade to "pending" without a key; fixtures cannot.
            raise ConfigError("SPORTS_API_KEY is required for the matches command", config_key="SPORTS_API_KEY")

    def log_config_summary(self) -> None:
        """Log a summary of the loaded configuration"""
        logger.info("=" * 60)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"⚽ Competition: {self.sportsdata.competition_name} (id {self.sportsdata.competition_id})")
        logger.info(f"   Retries: {self.sportsdata.max_retries} attempts, backoff base {self.sportsdata.backoff_base}")
        logger.info(f"🤖 Gemini: {self.gemini.model} "
                    f"({'✅ Enabled' if self.predictions_enabled else '❌ No API key'})")
        logger.info(f"💾 Cache: {self.cache.db_path}")
        logger.info(f"   TTL dynamic: {self.cache.dynamic_ttl_ms // 1000}s, static: {self.cache.static_ttl_ms // 1000}s")
        logger.info(f"🔀 Max concurrent matches: {self.orchestrator.max_concurrency}")
        logger.info("=" * 60)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary with secrets redacted"""
        def redact(value: Optional[str]) -> Optional[str]:
            return f"{value[:4]}..." if value else None

        return {
            'sportsdata': {
                'api_key': redact(self.sportsdata.api_key),
                'scores_base_url': self.sportsdata.scores_base_url,
                'projections_base_url': self.sportsdata.projections_base_url,
                'competition_id': self.sportsdata.competition_id,
                'competition_name': self.sportsdata.competition_name,
                'timeout': self.sportsdata.timeout,
                'max_retries': self.sportsdata.max_retries,
                'backoff_base': self.sportsdata.backoff_base,
            },
            'gemini': {
                'api_key': redact(self.gemini.api_key),
                'model': self.gemini.model,
                'base_url': self.gemini.base_url,
                'timeout': self.gemini.timeout,
                'max_retries': self.gemini.max_retries,
            },
            'cache': {
                'db_path': self.cache.db_path,
                'dynamic_ttl_ms': self.cache.dynamic_ttl_ms,
                'static_ttl_ms': self.cache.static_ttl_ms,
            },
            'orchestrator': {
                'max_concurrency': self.orchestrator.max_concurrency,
            },
        }
