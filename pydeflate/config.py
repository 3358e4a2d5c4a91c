"""Configuration management for pydeflate."""

import os
import json
import yaml
from typing import Dict, Optional, Any

from .constants import constants
from .errors import ContractError
from .settings import FIELDS, Settings


def _member_or_int(family_name: str):
    """Build an env converter accepting a catalog name ('sync') or a number ('2')."""
    def convert(value: str):
        family = getattr(constants, family_name)()
        if value in family:
            return family[value]
        return int(value)
    return convert


class Config:
    """Configuration manager with file and environment variable support."""

    def __init__(self, config_file: Optional[str] = None):
        self.config: Dict[str, Any] = {}
        self.config_file = config_file or os.getenv('PYDEFLATE_CONFIG', 'pydeflate.yaml')
        self._load_config()
        self._load_env_overrides()

    def _load_config(self):
        """Load configuration from file, merging it over the defaults."""
        self._set_defaults()
        if not os.path.exists(self.config_file):
            return

        try:
            with open(self.config_file, 'r') as f:
                if self.config_file.endswith('.yaml') or self.config_file.endswith('.yml'):
                    loaded = yaml.safe_load(f) or {}
                elif self.config_file.endswith('.json'):
                    loaded = json.load(f)
                else:
                    return
        except (OSError, ValueError, yaml.YAMLError):
            return

        if not isinstance(loaded, dict):
            return
        for section, values in loaded.items():
            if isinstance(values, dict):
                self.config.setdefault(section, {}).update(values)
            else:
                self.config[section] = values

    def _set_defaults(self):
        """Set default configuration values."""
        self.config = {
            "compression": {
                "variant": "deflate",
                "flush": constants.flush().no,
                "finish": constants.flush().finish,
                "chunk_size": constants.chunk_size().default,
                "level": constants.level().default,
                "memory_level": constants.memory_level().default,
                "strategy": constants.strategy().default,
                "window_bits": constants.window_bits().default,
                "encoding": "utf-8"
            },
            "logging": {
                "level": "INFO"
            },
            "monitoring": {
                "prometheus_enabled": False,
                "prometheus_port": 9090
            }
        }

    def _load_env_overrides(self):
        """Override config with environment variables."""
        env_mappings = {
            "COMPRESSION_VARIANT": ("compression", "variant"),
            "COMPRESSION_FLUSH": ("compression", "flush", _member_or_int("flush")),
            "COMPRESSION_FINISH": ("compression", "finish", _member_or_int("flush")),
            "COMPRESSION_CHUNK_SIZE": ("compression", "chunk_size", int),
            "COMPRESSION_LEVEL": ("compression", "level", int),
            "COMPRESSION_MEMORY_LEVEL": ("compression", "memory_level", int),
            "COMPRESSION_STRATEGY": ("compression", "strategy", _member_or_int("strategy")),
            "COMPRESSION_WINDOW_BITS": ("compression", "window_bits", int),
            "COMPRESSION_ENCODING": ("compression", "encoding"),
            "LOG_LEVEL": ("logging", "level", lambda x: x.upper()),
            "PROMETHEUS_ENABLED": ("monitoring", "prometheus_enabled", lambda x: x.lower() == "true"),
            "PROMETHEUS_PORT": ("monitoring", "prometheus_port", int)
        }

        for env_key, (section, key, *converters) in env_mappings.items():
            value = os.getenv(env_key)
            if value is not None:
                if converters:
                    converter = converters[0]
                    try:
                        value = converter(value)
                    except (ValueError, TypeError):
                        continue
                if section not in self.config:
                    self.config[section] = {}
                self.config[section][key] = value

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any):
        """Set configuration value."""
        if section not in self.config:
            self.config[section] = {}
        self.config[section][key] = value

    def save(self, filename: Optional[str] = None):
        """Save configuration to file."""
        target_file = filename or self.config_file
        with open(target_file, 'w') as f:
            if target_file.endswith('.yaml') or target_file.endswith('.yml'):
                yaml.dump(self.config, f, default_flow_style=False)
            else:
                json.dump(self.config, f, indent=2)

    def validate(self) -> tuple[bool, list[str]]:
        """Validate configuration."""
        errors = []
        settings = Settings()
        for field in FIELDS:
            value = self.get("compression", field)
            if value is None:
                continue
            try:
                getattr(settings, field)(value)
            except ContractError as e:
                errors.append(f"Invalid compression.{field}: {e}")

        if self.get("logging", "level") not in ("DEBUG", "INFO", "WARN", "ERROR"):
            errors.append(f"Invalid logging level: {self.get('logging', 'level')}")

        port = self.get("monitoring", "prometheus_port")
        if not isinstance(port, int) or port < 1 or port > 65535:
            errors.append("Invalid prometheus port")

        return len(errors) == 0, errors
