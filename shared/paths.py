from __future__ import annotations

from pathlib import Path

DEFAULT_GIT_DIR = ".git"


def ensure_dirs(*paths: Path) -> None:
    for p in paths:
        p.mkdir(parents=True, exist_ok=True)


def repo_paths(root: Path, git_dir: str = DEFAULT_GIT_DIR) -> dict[str, Path]:
    """Locations inside a repository. Nothing is created here."""
    repo = root / git_dir
    return {
        "repo": repo,
        "objects": repo / "objects",
        "refs": repo / "refs",
        "head": repo / "HEAD",
    }
