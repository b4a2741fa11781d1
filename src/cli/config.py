"""Configuration loading and management."""

from pathlib import Path
from typing import Optional

import yaml

from .config_models import PassportConfig

DEFAULT_CONFIG = PassportConfig().to_dict()


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".skinpassport" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config_model(config_path: Optional[Path] = None) -> PassportConfig:
    """Load configuration as Pydantic model with validation."""
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

    try:
        return PassportConfig.from_dict(base_config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")


def get_paths(config: PassportConfig) -> dict:
    """Expanded storage paths, with parent directories created."""
    paths = {
        "sessions_db": config.paths.sessions_db,
        "profiles_db": config.paths.profiles_db,
        "cache_db": config.paths.cache_db,
        "log_file": config.paths.log_file,
    }
    for p in paths.values():
        p.parent.mkdir(parents=True, exist_ok=True)
    return paths
