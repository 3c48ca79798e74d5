"""Configuration for stamp.

Settings live in ``<config dir>/config.json``. The config dir defaults to
the per-user application directory reported by click and can be moved
with ``--config-dir`` or ``STAMP_CONFIG_DIR``.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, List

import click

logger = logging.getLogger(__name__)

APP_NAME = "stamp"
CONFIG_FILE = "config.json"


@dataclass
class StampConfig:
    """User configuration (stored in config.json)."""
    # Name of the metadata file at a template root
    metadata_file: str = "stamp.yaml"

    # Substring that marks a file as template content
    template_marker: str = ".j2"

    # Registry location, relative paths resolve against the config dir
    registry_file: str = "registry.json"

    # Directories never scanned during template discovery
    ignored_dirs: List[str] = field(default_factory=lambda: [
        ".git", ".hg", ".svn", "__pycache__", "node_modules",
    ])

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StampConfig":
        return cls(**{
            k: v for k, v in data.items()
            if k in cls.__dataclass_fields__
        })


def default_config_dir() -> Path:
    """Per-user application directory for stamp."""
    return Path(click.get_app_dir(APP_NAME))


def load_config(config_dir: Optional[Path] = None) -> StampConfig:
    """Load config.json from the config dir, falling back to defaults."""
    config_dir = config_dir or default_config_dir()
    config_file = config_dir / CONFIG_FILE
    if not config_file.exists():
        return StampConfig()
    try:
        data = json.loads(config_file.read_text())
        return StampConfig.from_dict(data)
    except (json.JSONDecodeError, TypeError, AttributeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_file, e)
        return StampConfig()


def registry_path(config: StampConfig, config_dir: Optional[Path] = None) -> Path:
    """Absolute location of the registry file."""
    path = Path(config.registry_file).expanduser()
    if path.is_absolute():
        return path
    return (config_dir or default_config_dir()) / path
