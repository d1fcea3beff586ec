"""
Config system - typed application configuration.

Merge precedence (later overrides earlier):
defaults < .env file < environment variables < overrides
"""

from typing import Any, Dict, List, Optional, get_args, get_origin, get_type_hints
from dataclasses import dataclass, field, fields
from enum import Enum
import json
import logging
import os

from dotenv import dotenv_values

from .controller.compiler import PreStagePlacement


logger = logging.getLogger("talon.config")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class AppConfig:
    """Application settings."""

    application_name: str = "talon"
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    docs_enabled: bool = True
    docs_path: str = "/api-docs"
    docs_json_path: str = "/api-docs.json"
    cors_enabled: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    trust_identity_headers: bool = True
    pre_middleware_placement: PreStagePlacement = PreStagePlacement.AFTER_VALIDATION
    request_logging: bool = True
    autoload_packages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.value if isinstance(value, Enum) else value
        return data


_TRUE = ("true", "yes", "1", "on")
_FALSE = ("false", "no", "0", "off")


class ConfigLoader:
    """
    Loads ``AppConfig`` from the environment.

    Example:
        config = ConfigLoader.load(env_file=".env", overrides={"port": 9000})
    """

    def __init__(self, env_prefix: str = "TALON_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "TALON_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> AppConfig:
        """
        Build an ``AppConfig``.

        Raises:
            ConfigError: A value cannot be coerced to its field type
        """
        loader = cls(env_prefix=env_prefix)
        if env_file:
            loader._load_env_file(env_file)
        loader._load_from_env()
        if overrides:
            loader.config_data.update(overrides)
        return loader.build()

    def _load_env_file(self, path: str) -> None:
        if not os.path.exists(path):
            logger.debug("Env file %s not found, skipping", path)
            return
        self._merge_prefixed(dotenv_values(path))

    def _load_from_env(self) -> None:
        self._merge_prefixed(os.environ)

    def _merge_prefixed(self, source) -> None:
        for key, value in source.items():
            if value is None or not key.startswith(self.env_prefix):
                continue
            self.config_data[key[len(self.env_prefix):].lower()] = value

    def build(self) -> AppConfig:
        hints = get_type_hints(AppConfig)
        known = {f.name for f in fields(AppConfig)}
        kwargs = {}
        for name, value in self.config_data.items():
            if name not in known:
                logger.debug("Ignoring unknown config key %r", name)
                continue
            kwargs[name] = self._coerce(name, value, hints[name])
        return AppConfig(**kwargs)

    def _coerce(self, name: str, value: Any, expected: Any) -> Any:
        origin = get_origin(expected)
        try:
            if expected is bool:
                return self._parse_bool(value)
            if expected is int:
                if isinstance(value, bool):
                    raise ValueError("boolean is not an integer")
                return int(value)
            if isinstance(expected, type) and issubclass(expected, Enum):
                return expected(value)
            if origin in (list, List):
                return self._parse_list(value, get_args(expected))
            if expected is str:
                if not isinstance(value, str):
                    raise ValueError(f"expected a string, got {type(value).__name__}")
                return value
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Config field '{name}': invalid value {value!r} ({exc})") from exc
        return value

    @staticmethod
    def _parse_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError("expected a boolean")

    @staticmethod
    def _parse_list(value: Any, args) -> List[Any]:
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                items = json.loads(text)
            else:
                items = [part.strip() for part in text.split(",") if part.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = list(value)
        else:
            raise ValueError("expected a list")
        if args and args[0] is str:
            return [str(item) for item in items]
        return items
