"""Configuration management for the OpenAI adapter."""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

APP_NAME = 'antigravity-openai-adapter'
APP_VERSION = '1.0.0'

DEFAULT_CONFIG_PATHS = (
    Path.cwd() / 'config.json',
    Path.home() / '.config' / APP_NAME / 'config.json',
)

# camelCase file keys -> (attribute, scale). Millisecond values become seconds.
_FILE_KEYS = {
    'port': ('port', None),
    'upstreamUrl': ('upstream_url', None),
    'apiKey': ('api_key', None),
    'upstreamApiKey': ('upstream_api_key', None),
    'requestTimeout': ('request_timeout', 1000),
    'modelsCacheTtl': ('models_cache_ttl', 1000),
    'debug': ('debug', None),
    'autoStartProxy': ('auto_start_proxy', None),
}

# snake_case file keys are accepted as-is
_ATTRIBUTE_KEYS = {attr for attr, _ in _FILE_KEYS.values()}


class Config:
    """
    Application configuration.

    Precedence (lowest to highest): defaults, JSON config file,
    environment variables, explicit overrides (CLI).
    """

    def __init__(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        config_paths: Optional[Iterable[Path]] = None
    ):
        # Defaults
        self.port = 8081
        self.upstream_url = 'http://localhost:8080'
        self.api_key: Optional[str] = None
        self.upstream_api_key = 'test'
        self.request_timeout = 120.0
        self.models_cache_ttl = 300.0
        self.debug = False
        self.auto_start_proxy = False

        self.config_file: Optional[str] = None
        self._load_file(DEFAULT_CONFIG_PATHS if config_paths is None else config_paths)
        self._load_env()

        for key, value in (overrides or {}).items():
            if value is not None:
                setattr(self, key, value)

        self.upstream_url = self.upstream_url.rstrip('/')

    def _load_file(self, paths: Iterable[Path]):
        """Load the first readable JSON config file."""
        for path in paths:
            path = Path(path)
            if not path.exists():
                continue

            try:
                data = json.loads(path.read_text(encoding='utf-8'))
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config file {path}: {e}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Ignoring config file {path}: expected a JSON object")
                continue

            for key, value in data.items():
                if key in _FILE_KEYS:
                    attr, scale = _FILE_KEYS[key]
                    if scale and isinstance(value, (int, float)):
                        value = value / scale
                    setattr(self, attr, value)
                elif key in _ATTRIBUTE_KEYS:
                    setattr(self, key, value)

            self.config_file = str(path)
            logger.info(f"Loaded config from {path}")
            break

    def _load_env(self):
        """Apply environment variable overrides."""
        if os.getenv('PORT'):
            self.port = int(os.getenv('PORT'))

        # ANTHROPIC_* wins over the adapter-specific names
        self.upstream_url = os.getenv('ANTHROPIC_BASE_URL') or os.getenv('UPSTREAM_URL') or self.upstream_url
        self.api_key = os.getenv('API_KEY') or self.api_key
        self.upstream_api_key = (
            os.getenv('ANTHROPIC_AUTH_TOKEN') or
            os.getenv('UPSTREAM_API_KEY') or
            self.upstream_api_key
        )

        if os.getenv('REQUEST_TIMEOUT'):
            self.request_timeout = float(os.getenv('REQUEST_TIMEOUT'))
        if os.getenv('MODELS_CACHE_TTL'):
            self.models_cache_ttl = float(os.getenv('MODELS_CACHE_TTL'))

        if os.getenv('DEBUG', '').lower() == 'true':
            self.debug = True
        if os.getenv('AUTO_START_PROXY', '').lower() == 'true':
            self.auto_start_proxy = True

    def is_auth_enabled(self) -> bool:
        """Check if clients must present an API key."""
        return bool(self.api_key)

    def to_dict(self) -> dict:
        """Return configuration as dictionary (secrets redacted)."""
        return {
            'port': self.port,
            'upstream_url': self.upstream_url,
            'auth_enabled': self.is_auth_enabled(),
            'upstream_api_key_configured': bool(self.upstream_api_key),
            'request_timeout': self.request_timeout,
            'models_cache_ttl': self.models_cache_ttl,
            'debug': self.debug,
            'auto_start_proxy': self.auto_start_proxy,
            'config_file': self.config_file,
        }
