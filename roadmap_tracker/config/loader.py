"""Read and write the tracker's global configuration file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from .models import GlobalConfig

HOME_ENV = "ROADMAP_TRACKER_HOME"
GLOBAL_CONFIG_FILENAME = "global_config.yaml"


def resolve_home(fallback: Path | None = None) -> Path:
    """``$ROADMAP_TRACKER_HOME`` when set, else ``fallback`` or the repository root."""

    env_root = os.environ.get(HOME_ENV)
    if env_root:
        return Path(env_root).expanduser().resolve()
    return (fallback or Path(__file__).resolve().parents[2]).resolve()


def _load_yaml(text: str) -> Any:
    return yaml.safe_load(text) or {}


def _dump_yaml(payload: dict) -> str:
    return yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)


def _dump_json(payload: dict) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


_CODECS: dict[str, tuple[Callable[[str], Any], Callable[[dict], str]]] = {
    ".yaml": (_load_yaml, _dump_yaml),
    ".yml": (_load_yaml, _dump_yaml),
    ".json": (json.loads, _dump_json),
}
CONFIG_EXTENSIONS = tuple(_CODECS)


def _codec(path: Path) -> tuple[Callable[[str], Any], Callable[[dict], str]]:
    try:
        return _CODECS[path.suffix.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported configuration format '{path.suffix}', expected one of {CONFIG_EXTENSIONS}"
        ) from None


@dataclass(slots=True)
class ConfigLocator:
    """Paths under the tracker home: ``data/`` for config, ``logs/`` for log files."""

    project_root: Path | None = None
    config_name: str = GLOBAL_CONFIG_FILENAME
    data_dir: Path = field(init=False)
    logs_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        self.project_root = resolve_home(self.project_root)
        self.data_dir = self.project_root / "data"
        self.logs_dir = self.project_root / "logs"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / self.config_name


class ConfigRepository:
    """Load the global config once, writing the defaults when no file exists yet."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._loaded: GlobalConfig | None = None

    @property
    def path(self) -> Path:
        return self.locator.global_config_path()

    def load_global_config(self) -> GlobalConfig:
        if self._loaded is None:
            if self.path.exists():
                loads, _ = _codec(self.path)
                payload = loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(payload, dict):
                    raise ValueError(f"Configuration file must contain a mapping: {self.path}")
                self._loaded = GlobalConfig.model_validate(payload)
            else:
                self.save_global_config(GlobalConfig())
        return self._loaded

    def save_global_config(self, config: GlobalConfig) -> None:
        _, dumps = _codec(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(dumps(config.model_dump(mode="json")), encoding="utf-8")
        self._loaded = config

    def reload(self) -> GlobalConfig:
        self._loaded = None
        return self.load_global_config()


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "HOME_ENV",
    "resolve_home",
]
