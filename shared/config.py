from __future__ import annotations

import json
import logging
import os
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from appdirs import user_config_dir

from shared.paths import DEFAULT_GIT_DIR

APP_NAME = "objrepo"
APP_AUTHOR = "objrepo"

logger = logging.getLogger(__name__)


def config_dir() -> Path:
    override = os.getenv("OBJREPO_CONFIG_DIR")
    if override:
        return Path(override)
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def config_file() -> Path:
    return config_dir() / "config.json"


def _default_cfg() -> Dict[str, Any]:
    return {
        "store": {
            "git_dir": DEFAULT_GIT_DIR,
            "compression_level": zlib.Z_DEFAULT_COMPRESSION,
        }
    }


@dataclass
class StoreSettings:
    git_dir: str = DEFAULT_GIT_DIR
    compression_level: int = zlib.Z_DEFAULT_COMPRESSION


def _reset_corrupt(path: Path, reason: str) -> Dict[str, Any]:
    backup = path.with_suffix(".bak")
    path.replace(backup)
    logger.warning("Config %s %s; moved to %s and reset", path, reason, backup)
    cfg = _default_cfg()
    save_config(cfg)
    return cfg


def load_config() -> Dict[str, Any]:
    path = config_file()
    if not path.exists():
        cfg = _default_cfg()
        save_config(cfg)
        return cfg
    try:
        cfg = json.loads(path.read_text())
    except ValueError:
        return _reset_corrupt(path, "was unreadable")
    if not isinstance(cfg, dict) or not isinstance(cfg.get("store", {}), dict):
        return _reset_corrupt(path, "has the wrong shape")
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def get_store_settings() -> StoreSettings:
    store = load_config().get("store", {})
    defaults = StoreSettings()
    level = store.get("compression_level", defaults.compression_level)
    # bool is an int subclass
    if isinstance(level, bool) or not isinstance(level, int) or not -1 <= level <= 9:
        logger.warning("Ignoring compression_level %r, expected an integer in -1..9", level)
        level = defaults.compression_level
    git_dir = store.get("git_dir")
    if not isinstance(git_dir, str) or not git_dir:
        git_dir = defaults.git_dir
    return StoreSettings(git_dir=git_dir, compression_level=level)


def remember_store_settings(settings: StoreSettings) -> None:
    cfg = load_config()
    cfg["store"] = {
        "git_dir": settings.git_dir,
        "compression_level": settings.compression_level,
    }
    save_config(cfg)
