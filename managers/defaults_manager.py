"""Layered defaults for provider, generation and assistant settings"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from provider_client import DEFAULT_BASE_URL, DEFAULT_IMAGE_MODEL, DEFAULT_TEXT_MODEL, DEFAULT_VIDEO_MODEL

logger = logging.getLogger("MCP_Server")

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "slot-studio"
CONFIG_FILE = CONFIG_DIR / "config.json"

NAMESPACES = ("provider", "generation", "assist")
ENV_VARS = {
    ("provider", "base_url"): "SLOT_STUDIO_PROVIDER_URL",
    ("provider", "request_timeout"): "SLOT_STUDIO_REQUEST_TIMEOUT",
    ("generation", "model"): "SLOT_STUDIO_VIDEO_MODEL",
    ("generation", "poll_interval"): "SLOT_STUDIO_POLL_INTERVAL",
    ("generation", "timeout"): "SLOT_STUDIO_GENERATION_TIMEOUT",
    ("generation", "max_attempts"): "SLOT_STUDIO_MAX_POLL_ATTEMPTS",
    ("assist", "text_model"): "SLOT_STUDIO_TEXT_MODEL",
    ("assist", "image_model"): "SLOT_STUDIO_IMAGE_MODEL",
}
NUMERIC_KEYS = {
    "request_timeout": int,
    "poll_interval": float,
    "timeout": float,
    "max_attempts": int,
    "reference_max_dim": int,
}


class DefaultsManager:
    """Layered settings for the provider client, generation jobs and assist models.

    Lookup order is per-call value, runtime override, config file, environment,
    then the built-in value.
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else CONFIG_FILE
        self._runtime_defaults: Dict[str, Dict[str, Any]] = {namespace: {} for namespace in NAMESPACES}
        self._config_defaults = self._load_config_defaults()
        self._hardcoded_defaults = {
            "provider": {
                "base_url": DEFAULT_BASE_URL,
                "request_timeout": 60,
            },
            "generation": {
                "model": DEFAULT_VIDEO_MODEL,
                "resolution": "720p",
                "aspect_ratio": "16:9",
                "poll_interval": 5.0,
                "timeout": 600.0,
                "max_attempts": 120,
                "reference_max_dim": 1280,
            },
            "assist": {
                "text_model": DEFAULT_TEXT_MODEL,
                "image_model": DEFAULT_IMAGE_MODEL,
            },
        }

    def _load_config_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from config file"""
        defaults = {namespace: {} for namespace in NAMESPACES}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
                for namespace in NAMESPACES:
                    defaults[namespace] = dict(config.get("defaults", {}).get(namespace, {}))
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")
        return defaults

    def get_seed_slots(self) -> Optional[List[Dict[str, Any]]]:
        """Starting slot inventory from the config file's ``slots`` list, or None when absent"""
        if not self.config_file.exists():
            return None
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load config file {self.config_file}: {e}")
            return None
        slots = config.get("slots")
        if slots is None:
            return None
        if not isinstance(slots, list):
            logger.warning(f"Ignoring 'slots' in {self.config_file}: expected a list")
            return None
        return slots

    def _get_env_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from environment variables"""
        defaults = {namespace: {} for namespace in NAMESPACES}
        for (namespace, key), env_name in ENV_VARS.items():
            value = os.getenv(env_name)
            if not value:
                continue
            try:
                defaults[namespace][key] = self._coerce(key, value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring {env_name}={value!r}: not a valid number")
        return defaults

    def _layers(self) -> List[Dict[str, Dict[str, Any]]]:
        # Highest precedence first
        return [self._runtime_defaults, self._config_defaults, self._get_env_defaults(), self._hardcoded_defaults]

    def get_default(self, namespace: str, key: str, provided_value: Any = None) -> Any:
        """Effective value of ``namespace.key``; an explicit ``provided_value`` always wins"""
        if provided_value is not None:
            return provided_value
        for layer in self._layers():
            values = layer.get(namespace, {})
            if key in values:
                return values[key]
        return None

    def get_all_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Every namespace with all layers merged"""
        layers = list(reversed(self._layers()))
        result = {}
        for namespace in NAMESPACES:
            merged: Dict[str, Any] = {}
            for layer in layers:
                merged.update(layer.get(namespace, {}))
            result[namespace] = merged
        return result

    def set_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Set runtime defaults for a namespace. Returns validation errors if any."""
        if namespace not in NAMESPACES:
            return {"error": f"Invalid namespace: {namespace}. Must be one of {', '.join(NAMESPACES)}"}

        errors = []
        cleaned = {}
        known_keys = self._hardcoded_defaults[namespace]
        for key, value in defaults.items():
            if key not in known_keys:
                errors.append(f"Unknown {namespace} setting '{key}'. Known: {sorted(known_keys)}")
                continue
            try:
                cleaned[key] = self._coerce(key, value)
            except (TypeError, ValueError):
                errors.append(f"Setting '{key}' must be a positive number, got {value!r}")

        if errors:
            return {"errors": errors}

        self._runtime_defaults[namespace].update(cleaned)
        return {"success": True, "updated": cleaned}

    def persist_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Persist defaults to config file"""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        config = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
            except (json.JSONDecodeError, IOError):
                config = {}

        config.setdefault("defaults", {}).setdefault(namespace, {}).update(defaults)

        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2)
            self._config_defaults = self._load_config_defaults()
            return {"success": True, "persisted": defaults}
        except IOError as e:
            return {"error": f"Failed to write config file: {e}"}

    def _coerce(self, key: str, value: Any) -> Any:
        caster = NUMERIC_KEYS.get(key)
        if caster is None:
            return value
        number = caster(value)
        if number <= 0:
            raise ValueError(f"{key} must be positive")
        return number
