from __future__ import annotations
import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

DEFAULT_MAX_PARKED_LOGS = 10
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    # how many inactive (file, samples) undo histories are kept for revival
    max_parked_logs: int = DEFAULT_MAX_PARKED_LOGS
    log_level: str = "INFO"
    config_folder: str = ""
    config_filename: str = "settings.json"

    def __post_init__(self):
        try:
            self.max_parked_logs = max(0, int(self.max_parked_logs))
        except (TypeError, ValueError):
            self.max_parked_logs = DEFAULT_MAX_PARKED_LOGS
        level = str(self.log_level or "INFO").upper()
        self.log_level = level if level in VALID_LOG_LEVELS else "INFO"
        self.config_folder = str(self.config_folder or "")

    @property
    def config_path(self) -> Path:
        return Path(self.config_folder) / self.config_filename

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self) -> None:
        cfg_path = self.config_path
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        tmp.replace(cfg_path)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        if path is None:
            raise ValueError("path must be provided for load()")
        path = Path(path)
        if not path.exists():
            # return default config with folder set
            return cls(config_folder=str(path.parent), config_filename=path.name)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(
                max_parked_logs=data.get("max_parked_logs", DEFAULT_MAX_PARKED_LOGS),
                log_level=data.get("log_level", "INFO"),
                config_folder=str(path.parent),
                config_filename=path.name,
            )
        except (OSError, ValueError, AttributeError):
            # on parse error return defaults and keep config folder
            return cls(config_folder=str(path.parent), config_filename=path.name)

# Module-level singleton accessor
_config_singleton: Optional[Config] = None

def _default_repo_config_folder() -> Path:
    # repo root is one level up from this file: .../dataio/configuration.py
    repo_root = Path(__file__).resolve().parent.parent
    return repo_root / "config"

def get_config(recreate: bool = False) -> Config:
    """
    Return a singleton Config instance.
    On first call the JSON file in the repo config folder is loaded (or created).
    Set recreate=True to reload from disk.
    """
    global _config_singleton
    if _config_singleton is not None and not recreate:
        return _config_singleton

    cfg_folder = _default_repo_config_folder()
    cfg_file = cfg_folder / "settings.json"
    if cfg_file.exists():
        cfg = Config.load(cfg_file)
    else:
        cfg = Config(config_folder=str(cfg_folder), config_filename="settings.json")
        try:
            cfg.save()
        except OSError:
            # read-only install; run with defaults
            pass
    _config_singleton = cfg
    return _config_singleton
