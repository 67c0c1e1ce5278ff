"""
Configuration management for CTN
"""

import os
import json
import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .constants import (
    ARCHIVE_KEY,
    BOTTOM_THRESHOLD_PX,
    DEFAULT_DB_FILENAME,
    FAVORITES_KEY,
    PINNED_KEY_PREFIX,
    TITLE_MAX_LENGTH,
    UNTITLED_CONVERSATION,
    UNTITLED_FOLDER,
)

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for CTN"""

    DEFAULT_CONFIG_PATH = Path.home() / ".ctn" / "config.json"

    # Default configuration
    DEFAULTS = {
        "storage": {
            "backend": "sqlite",
            "path": "~/.ctn",
            "db_filename": DEFAULT_DB_FILENAME,
            "pinned_prefix": PINNED_KEY_PREFIX,
            "favorites_key": FAVORITES_KEY,
            "archive_key": ARCHIVE_KEY,
        },
        "navigation": {
            "bottom_threshold_px": BOTTOM_THRESHOLD_PX,
        },
        "favorites": {
            "title_max_length": TITLE_MAX_LENGTH,
            "untitled_label": UNTITLED_CONVERSATION,
        },
        "archive": {
            "untitled_folder_name": UNTITLED_FOLDER,
        },
    }

    def __init__(self, config_path: Optional[Path] = None, persist: bool = True):
        """
        Initialize configuration

        Args:
            config_path: Optional custom config path (defaults to $CTN_CONFIG
                or ~/.ctn/config.json)
            persist: If False, never write the config file back to disk
        """
        env_path = os.environ.get("CTN_CONFIG")
        self.config_path = Path(config_path or env_path or self.DEFAULT_CONFIG_PATH)
        self.persist = persist
        self.config = self.load()

    def load(self) -> Dict[str, Any]:
        """Load configuration from file, falling back to defaults"""
        defaults = copy.deepcopy(self.DEFAULTS)
        if not self.config_path.exists():
            return defaults

        try:
            with open(self.config_path, 'r') as f:
                user_config = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file {self.config_path}: {e}, using defaults")
            return defaults
        except (IOError, OSError) as e:
            logger.warning(f"Error reading config file {self.config_path}: {e}, using defaults")
            return defaults

        if not isinstance(user_config, dict):
            logger.warning(f"Config file {self.config_path} is not a JSON object, using defaults")
            return defaults

        # Merge with defaults (user config takes precedence)
        return self._deep_merge(defaults, user_config)

    def save(self, config: Optional[Dict[str, Any]] = None):
        """Save configuration to file"""
        if not self.persist:
            return
        config = config or self.config

        # Ensure directory exists
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w') as f:
            json.dump(config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key

        Examples:
            config.get('storage.backend')
            config.get('navigation.bottom_threshold_px', 200)
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value by dot-notation key

        Examples:
            config.set('storage.backend', 'memory')
        """
        keys = key.split('.')
        target = self.config

        # Navigate to parent
        for k in keys[:-1]:
            if not isinstance(target.get(k), dict):
                target[k] = {}
            target = target[k]

        target[keys[-1]] = value

        self.save()

    def get_storage_path(self) -> Path:
        """Directory that holds the SQLite database"""
        return Path(os.path.expanduser(self.get('storage.path', '~/.ctn')))

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                base[key] = self._deep_merge(base[key], value)
            else:
                base[key] = value
        return base


# Global config instance
_config = None

def get_config() -> Config:
    """Get global config instance"""
    global _config
    if _config is None:
        _config = Config()
    return _config
