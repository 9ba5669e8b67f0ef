"""Configuration for AttioConnect clients."""

import logging
import os
import threading
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

DEFAULT_SETTINGS: Dict[str, Any] = {
    'api_key': None,
    'api_base': "https://api.attio.com",
    'api_version': "v2",
    'timeout': 30,
    'open_timeout': 10,
    'max_retries': 3,
    'verify_ssl_certs': True,
    'ca_bundle_path': None,
    'debug': False,
    'logger': None,
}

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(value: str, default: bool) -> bool:
    value = value.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return default


class Configuration:
    """Settings shared by the request pipeline.

    Mutable until ``finalize()`` is called; afterwards every assignment raises
    ``ConfigurationError``. One instance is threaded through the builder,
    connection manager and pool of a client rather than living globally.
    """

    def __init__(self, **settings: Any):
        object.__setattr__(self, '_lock', threading.Lock())
        object.__setattr__(self, '_finalized', False)
        for name, value in DEFAULT_SETTINGS.items():
            object.__setattr__(self, name, value)
        self.configure(**settings)

    def __setattr__(self, name: str, value: Any):
        self.configure(**{name: value})

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def configure(self, **settings: Any) -> "Configuration":
        """Apply `settings` atomically: nothing changes unless all of them validate."""
        with self._lock:
            if self._finalized:
                raise ConfigurationError("Cannot modify finalized configuration")
            for name in settings:
                if name not in DEFAULT_SETTINGS:
                    raise ConfigurationError(f"Unknown configuration setting: {name}")

            candidate = self._settings()
            candidate.update(settings)
            self._check(candidate)
            for name, value in settings.items():
                object.__setattr__(self, name, value)
        return self

    def _settings(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in DEFAULT_SETTINGS}

    @staticmethod
    def _check(settings: Dict[str, Any]):
        if not settings['api_base']:
            raise ConfigurationError("api_base must be configured")
        for name in ('timeout', 'open_timeout'):
            value = settings[name]
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive")
        max_retries = settings['max_retries']
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ConfigurationError("max_retries must be a non-negative integer")

    def validate(self) -> bool:
        self._check(self._settings())
        return True

    def finalize(self) -> "Configuration":
        """Validate and freeze the configuration."""
        with self._lock:
            if not self._finalized:
                self.validate()
                object.__setattr__(self, '_finalized', True)
        return self

    def merge(self, **overrides: Any) -> "Configuration":
        """Return an unfinalized copy with `overrides` applied."""
        settings = self._settings()
        settings.update(overrides)
        return type(self)(**settings)

    def to_dict(self) -> Dict[str, Any]:
        settings = self._settings()
        if settings['api_key']:
            settings['api_key'] = "[REDACTED]"
        return settings

    def get_logger(self):
        return self.logger or logging.getLogger("AttioConnect")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides: Any) -> "Configuration":
        """Build a configuration from ATTIO_* environment variables (and a .env file)."""
        load_dotenv(env_file)

        settings: Dict[str, Any] = {}
        for name in ('api_key', 'api_base', 'api_version', 'ca_bundle_path'):
            value = os.getenv(f"ATTIO_{name.upper()}")
            if value:
                settings[name] = value
        try:
            for name, cast in (('timeout', float), ('open_timeout', float), ('max_retries', int)):
                value = os.getenv(f"ATTIO_{name.upper()}")
                if value:
                    settings[name] = cast(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e
        if os.getenv("ATTIO_DEBUG"):
            settings['debug'] = _env_bool(os.environ["ATTIO_DEBUG"], False)
        if os.getenv("ATTIO_VERIFY_SSL_CERTS"):
            settings['verify_ssl_certs'] = _env_bool(os.environ["ATTIO_VERIFY_SSL_CERTS"], True)

        settings.update(overrides)
        return cls(**settings)

    def __repr__(self) -> str:
        return f"Configuration({self.to_dict()!r}, finalized={self._finalized})"
