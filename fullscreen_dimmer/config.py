"""
Configuration Management
========================
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

import yaml

logger = logging.getLogger(__name__)


@dataclass
class DDCConfig:
    """ddcutil tuning."""
    retry_count: int = 1
    sleep_multiplier: float = 0.5


@dataclass
class Config:
    """
    Runtime options for the dimmer.

    Values come from defaults, then an optional YAML file, then the command
    line. The file is only ever read.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".config" / "fullscreen-dimmer" / "config.yaml"

    ignore_displays: List[str] = field(default_factory=list)
    ignore_apps: List[str] = field(default_factory=list)
    focused_only: bool = False
    fade_time_ms: int = 1000
    poll_interval_ms: int = 500
    fade_interval_ms: int = 10
    on_write_failure: str = "abort"
    brightness_overrides: Dict[str, int] = field(default_factory=dict)
    ddc: DDCConfig = field(default_factory=DDCConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from file.

        Args:
            config_path: Path to configuration file, or None for the default location

        Returns:
            Config; defaults if the file is missing or unreadable

        Raises:
            ValueError: If the file parses but holds values of the wrong type
        """
        config = cls()
        path = config_path or cls.DEFAULT_CONFIG_PATH
        if not path.exists():
            if config_path is not None:
                logger.warning(f"Configuration file not found: {path}")
            return config

        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse configuration: {e}")
            return config
        except OSError as e:
            logger.error(f"Failed to load configuration: {e}")
            return config

        if not isinstance(data, dict):
            logger.error(f"Configuration in {path} must be a mapping, ignoring it")
            return config

        try:
            config._parse(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"{path}: {e}") from e
        logger.info(f"Loaded configuration from {path}")
        return config

    def _parse(self, data: Dict[str, Any]):
        """Apply a parsed YAML mapping over the current values."""
        self.ignore_displays = list(data.get('ignore_displays', self.ignore_displays) or [])
        self.ignore_apps = list(data.get('ignore_apps', self.ignore_apps) or [])
        self.focused_only = bool(data.get('focused_only', self.focused_only))
        self.fade_time_ms = data.get('fade_time_ms', self.fade_time_ms)
        self.poll_interval_ms = data.get('poll_interval_ms', self.poll_interval_ms)
        self.fade_interval_ms = data.get('fade_interval_ms', self.fade_interval_ms)
        self.on_write_failure = data.get('on_write_failure', self.on_write_failure)
        self.brightness_overrides = {
            str(name): int(value)
            for name, value in (data.get('brightness_overrides') or {}).items()
        }

        ddc = data.get('ddc', {}) or {}
        self.ddc = DDCConfig(
            retry_count=ddc.get('retry_count', self.ddc.retry_count),
            sleep_multiplier=ddc.get('sleep_multiplier', self.ddc.sleep_multiplier),
        )

    def apply_args(self, args) -> 'Config':
        """Override file values with whatever was given on the command line."""
        if args.ignore_display:
            self.ignore_displays = self.ignore_displays + args.ignore_display
        if args.ignore_app:
            self.ignore_apps = self.ignore_apps + args.ignore_app
        if args.focused_only:
            self.focused_only = True
        if args.fade_time is not None:
            self.fade_time_ms = args.fade_time
        if args.poll_interval is not None:
            self.poll_interval_ms = args.poll_interval
        if args.fade_interval is not None:
            self.fade_interval_ms = args.fade_interval
        if args.on_write_failure is not None:
            self.on_write_failure = args.on_write_failure
        return self

    def validate(self):
        """
        Raises:
            ValueError: On values the dimmer can't run with
        """
        for key in ('fade_time_ms', 'poll_interval_ms', 'fade_interval_ms'):
            value = getattr(self, key)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{key} must be a positive number, got {value!r}")
        if self.on_write_failure not in ('abort', 'drop'):
            raise ValueError(f"on_write_failure must be 'abort' or 'drop', got {self.on_write_failure!r}")
        for name, value in self.brightness_overrides.items():
            # Capped at the device maximum when screens are built
            if value < 0:
                raise ValueError(f"Brightness override for {name!r} must not be negative, got {value}")
