# shared/version.py
from __future__ import annotations

import os
from importlib import metadata

_DEFAULT_VERSION = "0.1.0"


def get_app_version() -> str:
    v = os.getenv("OBJREPO_VERSION")
    if v:
        return v.strip()
    try:
        return metadata.version("objrepo")
    except metadata.PackageNotFoundError:
        return _DEFAULT_VERSION


APP_VERSION = get_app_version()
