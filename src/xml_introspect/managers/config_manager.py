# src/xml_introspect/managers/config_manager.py
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from xml_introspect.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merges 'override' into 'base' recursively. Nested dicts are merged, everything else replaced."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigManager:
    """
    A singleton class to manage the analyzer, sampler and schema settings.
    Defaults come from the packaged settings.json; an optional user file
    (~/.xml_introspect/settings.json) is merged on top of them.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self._config: Dict[str, Any] = {}
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        """Returns the entire current configuration dictionary."""
        return self._config

    def get_section(self, section: str) -> Dict[str, Any]:
        """Returns a copy of a top-level section, so callers can't mutate the shared config."""
        value = self._config.get(section)
        return copy.deepcopy(value) if isinstance(value, dict) else {}

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Safely retrieves a nested value from the configuration.
        e.g., 'sampling.max_elements'.
        """
        value = self._config
        for key in key_path.split('.'):
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in the in-memory configuration, cast to the type
        of the value it replaces. e.g., 'sampling.max_elements', '250'
        """
        keys = key_path.split('.')
        d = self._config
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a dictionary.", key)
                return False

        original_value = d.get(keys[-1])
        if original_value is not None:
            value = self._cast_like(original_value, value, key_path)

        d[keys[-1]] = value
        logger.info("Configuration updated: %s = %s", key_path, value)
        return True

    @staticmethod
    def _cast_like(original: Any, value: Any, key_path: str) -> Any:
        # bool("false") is True, so strings are interpreted explicitly
        if isinstance(original, bool) and isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off"):
                return False
        elif isinstance(original, (dict, list)) and isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, type(original)):
                return parsed
        else:
            try:
                return type(original)(value)
            except (ValueError, TypeError):
                pass
        logger.warning(
            "Could not cast new value for '%s' to type %s. Storing as given.",
            key_path, type(original).__name__
        )
        return value

    def reset(self):
        """Reloads the defaults from settings.json and re-applies the user overrides."""
        self._config = self._load(PathUtils.get_settings_file(), required=True)
        user_settings = self._load(PathUtils.get_user_settings_file(), required=False)
        if user_settings:
            _deep_merge(self._config, user_settings)
            logger.info("Merged user settings from %s.", PathUtils.get_user_settings_file())
        logger.info("Configuration has been (re)loaded from settings.json.")

    @staticmethod
    def _load(config_path: Path, required: bool) -> Dict[str, Any]:
        if not config_path.exists():
            if required:
                logger.warning("settings.json not found at %s. Using empty config.", config_path)
            return {}
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load %s: %s", config_path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Ignoring %s: top-level value must be an object.", config_path)
            return {}
        return data


# The global singleton instance that the entire package uses.
config_manager = ConfigManager()
