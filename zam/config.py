import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

DATABASE_ENV_VAR = "ZAM_DATABASE_FILE"
DEFAULT_DATABASE_FILE = "zam.db"


class Config:
    """Manage zam configuration and table styles"""

    THEMES = {
        "default": {
            "alias_color": "cyan",
            "command_color": "green",
            "description_color": "dim",
            "date_color": "magenta",
            "error_color": "red",
        },
        "plain": {
            "alias_color": "white",
            "command_color": "white",
            "description_color": "white",
            "date_color": "white",
            "error_color": "bold white",
        },
    }

    DEFAULT_CONFIG = {
        "theme": "default",
        "confirm_delete": False,
        "show_dates": True,
    }

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or Path.home() / ".config" / "zam"
        self.config_path = self.config_dir / "config.json"
        self.config = self.load()

    def load(self) -> Dict[str, Any]:
        """Load configuration from file, falling back to defaults"""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    user_config = json.load(f)
                if isinstance(user_config, dict):
                    return {**self.DEFAULT_CONFIG, **user_config}
            except (OSError, json.JSONDecodeError):
                pass
        return self.DEFAULT_CONFIG.copy()

    def save(self) -> None:
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            json.dump(self.config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.config[key] = value
        self.save()

    def get_theme(self) -> Dict[str, str]:
        """Get current table colors"""
        theme_name = self.config.get("theme", "default")
        return self.THEMES.get(theme_name, self.THEMES["default"])

    def resolve_database_path(self) -> Path:
        """Pick the database file: existing default, then $ZAM_DATABASE_FILE, then default"""
        default_path = self.config_dir / DEFAULT_DATABASE_FILE
        if default_path.exists():
            return default_path

        env_value = os.environ.get(DATABASE_ENV_VAR)
        if env_value:
            return Path(env_value)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        return default_path
