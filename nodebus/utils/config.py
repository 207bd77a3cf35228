"""
Configuration management for nodebus.
"""
import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from nodebus.utils.constants import CONFIGS_DIR


class Config:
    """Configuration manager that merges multiple domain-specific JSON files."""

    def __init__(self, configs_dir: Optional[str] = None, load_env: bool = True):
        """
        Initialize configuration by loading all JSON files in the configs directory.

        Args:
            configs_dir: Path to directory containing JSON configs (defaults to nodebus/configs)
            load_env: Apply NODEBUS_* environment overrides after the files.
        """
        self.config: Dict[str, Any] = {}

        configs_path = Path(configs_dir) if configs_dir else CONFIGS_DIR

        if configs_path.exists() and configs_path.is_dir():
            for config_file in sorted(configs_path.glob("*.json")):
                self.load_from_file(str(config_file))

        if load_env:
            self._load_from_env()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        if os.environ.get('NODEBUS_LOG_LEVEL'):
            self.config.setdefault('logging', {})['level'] = os.environ['NODEBUS_LOG_LEVEL']
        if os.environ.get('NODEBUS_SERIALIZE'):
            self.config.setdefault('bus', {})['serialize_in_transit'] = os.environ['NODEBUS_SERIALIZE']

    def load_from_file(self, path: str):
        """Load configuration from a JSON file and merge it into the current one."""
        with open(path, 'r') as f:
            user_config = json.load(f)
        self.merge(user_config)

    def merge(self, user_config: Dict[str, Any]):
        """Merge a config dict into the current one recursively."""
        def update(d, u):
            for k, v in u.items():
                if isinstance(v, dict):
                    d[k] = update(d.get(k, {}), v)
                else:
                    d[k] = v
            return d

        update(self.config, user_config)

    def get_int(self, key: str, default: int = 0) -> int:
        """Get config value as integer."""
        val = self.get(key, default)
        try:
            return int(val)
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get config value as float."""
        val = self.get(key, default)
        try:
            return float(val)
        except (ValueError, TypeError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get config value as boolean."""
        val = self.get(key, default)
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ('true', '1', 'yes', 'on')
        return bool(val)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key, e.g. 'bus.default_queue_depth'."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def save_to_file(self, path: str):
        """Save current configuration to file."""
        with open(path, 'w') as f:
            json.dump(self.config, f, indent=2)
