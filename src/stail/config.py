"""Configuration management for stail."""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """User configuration settings."""

    refresh_sec: float = 10.0
    file_refresh_sec: float = 10.0
    user: Optional[str] = None
    lookback_hours: int = 24
    running_only: bool = False

    @classmethod
    def config_path(cls) -> Path:
        """Get the configuration file path."""
        config_dir = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "stail"
        return config_dir / "config.json"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from file, falling back to defaults."""
        config_path = cls.config_path()
        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    data = json.load(f)
                defaults = cls()
                return cls(
                    refresh_sec=float(data.get("refresh_sec", defaults.refresh_sec)),
                    file_refresh_sec=float(data.get("file_refresh_sec", defaults.file_refresh_sec)),
                    user=data.get("user"),
                    lookback_hours=int(data.get("lookback_hours", defaults.lookback_hours)),
                    running_only=bool(data.get("running_only", defaults.running_only)),
                )
            except (json.JSONDecodeError, IOError, TypeError, ValueError, AttributeError) as e:
                logger.warning("ignoring invalid config %s: %s", config_path, e)
        return cls()

    def save(self) -> None:
        """Save configuration to file."""
        config_path = self.config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(config_path, "w") as f:
                json.dump(asdict(self), f, indent=2)
        except IOError as e:
            logger.warning("could not save config %s: %s", config_path, e)
