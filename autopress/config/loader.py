"""YAML files behind the static configuration.

``config.yaml`` holds the process configuration (:class:`ConfigModel`) and
``sources.yaml`` beside it seeds the sources table. The directory defaults to
``~/.config/autopress`` and can be moved with ``AUTOPRESS_CONFIG``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import ConfigModel, SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "autopress"
CONFIG_ENV = "AUTOPRESS_CONFIG"


def _read_yaml(path: Path, kind: str) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"{kind.capitalize()} file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {kind} file: {e}")
    return data or {}


def _write_yaml(data: Dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


class Config:
    """Lazily loaded process configuration plus the paths around it."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path or Path(os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_DIR / "config.yaml"))
        self._config: Optional[ConfigModel] = None

    @classmethod
    def from_model(cls, model: ConfigModel, config_path: Optional[Path] = None) -> "Config":
        """Wrap an in-memory model, e.g. one that ``init`` just wrote."""
        config = cls(config_path)
        config._config = model
        return config

    @property
    def config(self) -> ConfigModel:
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    @property
    def sources_path(self) -> Path:
        return self.config_path.parent / "sources.yaml"

    def get_db_config(self) -> Dict[str, Any]:
        """Postgres settings for :func:`autopress.db.open_pool`."""
        return self.config.postgres.model_dump()


def env_api_key(provider: str) -> Optional[str]:
    """API key for ``provider`` from AUTOPRESS_<PROVIDER>_API_KEY."""
    return os.environ.get(f"AUTOPRESS_{provider.upper()}_API_KEY") or None


def load_config(config_path: Path) -> ConfigModel:
    """Parse and validate ``config.yaml``.

    Raises:
        FileNotFoundError: the file does not exist
        ValueError: the YAML or one of its values is invalid
    """
    data = _read_yaml(config_path, "config")
    try:
        return ConfigModel.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}")


def load_sources(sources_path: Path) -> List[SourceConfig]:
    """Parse ``sources.yaml``; entries that fail validation are logged and skipped."""
    entries = _read_yaml(sources_path, "sources").get("sources") or []
    sources = []
    for entry in entries:
        try:
            sources.append(SourceConfig.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid source %s: %s", entry.get("name", "unknown"), e)
    return sources


def save_config(config: ConfigModel, config_path: Path) -> None:
    _write_yaml(config.model_dump(), config_path)


def save_sources(sources: List[SourceConfig], sources_path: Path) -> None:
    _write_yaml({"sources": [s.model_dump(exclude_none=True) for s in sources]}, sources_path)
