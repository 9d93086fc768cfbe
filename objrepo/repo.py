from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional

from objrepo.errors import IoFailure, SizeMismatch
from objrepo.storage.cas import get_object, put_file
from objrepo.storage.codec import CHUNK_SIZE
from objrepo.tree import describe_tree, read_tree
from shared.config import StoreSettings
from shared.models import ObjectKind, TreeRow
from shared.paths import ensure_dirs, repo_paths

logger = logging.getLogger(__name__)

HEAD_REF = "ref: refs/heads/main\n"


def _paths(root: Path, settings: Optional[StoreSettings]) -> dict[str, Path]:
    settings = settings or StoreSettings()
    return repo_paths(root, settings.git_dir)


def is_repo(root: Path, settings: Optional[StoreSettings] = None) -> bool:
    return _paths(root, settings)["objects"].is_dir()


def init_repo(root: Path, settings: Optional[StoreSettings] = None) -> Path:
    """Create the objects and refs directories and point HEAD at main."""
    rp = _paths(root, settings)
    try:
        ensure_dirs(rp["repo"], rp["objects"], rp["refs"])
        if not rp["head"].exists():
            rp["head"].write_text(HEAD_REF)
    except OSError as exc:
        raise IoFailure("init", rp["repo"], str(exc)) from exc
    logger.debug("Initialised repository at %s", rp["repo"])
    return rp["repo"]


def objects_dir(root: Path, settings: Optional[StoreSettings] = None) -> Path:
    return _paths(root, settings)["objects"]


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def _write_rows(rows: list[TreeRow], out: BinaryIO) -> None:
    for row in rows:
        out.write(row.render() + b"\n")


def cat_file(root: Path, digest: str, out: BinaryIO, settings: Optional[StoreSettings] = None) -> ObjectKind:
    """
    Pretty-print an object to `out`.
    Blobs and commits are copied verbatim; trees are shown as listing rows.
    """
    objects = objects_dir(root, settings)
    with get_object(objects, digest) as obj:
        kind = obj.kind
        if kind is not ObjectKind.TREE:
            copied = 0
            while True:
                chunk = obj.content.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                copied += len(chunk)
            if copied != obj.expected_size:
                raise SizeMismatch(f"{digest}: read {copied} bytes, expected {obj.expected_size}")
            return kind

    _write_rows(describe_tree(objects, digest), out)
    return kind


def hash_file(
    root: Path,
    path: Path,
    write: bool = False,
    kind: ObjectKind = ObjectKind.BLOB,
    settings: Optional[StoreSettings] = None,
) -> str:
    settings = settings or StoreSettings()
    return put_file(objects_dir(root, settings), path, kind=kind, write=write, level=settings.compression_level)


def ls_tree(
    root: Path,
    digest: str,
    out: BinaryIO,
    name_only: bool = False,
    settings: Optional[StoreSettings] = None,
) -> int:
    """Write the entries of a tree to `out`; returns how many were listed."""
    objects = objects_dir(root, settings)
    if name_only:
        entries = read_tree(objects, digest)
        for entry in entries:
            out.write(entry.name + b"\n")
        return len(entries)

    rows = describe_tree(objects, digest)
    _write_rows(rows, out)
    return len(rows)
