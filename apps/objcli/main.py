from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from objrepo.errors import IoFailure, ObjectStoreError
from objrepo.repo import cat_file, hash_file, init_repo, ls_tree
from objrepo.storage.cas import validate_digest
from shared.config import StoreSettings, config_file, get_store_settings, remember_store_settings
from shared.models import ObjectKind
from shared.version import APP_VERSION

logger = logging.getLogger("objrepo")


def _object_id(value: str) -> str:
    try:
        return validate_digest(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="objrepo", description="Loose object store")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    parser.add_argument("-C", dest="root", type=Path, default=Path("."), help="repository root (default: .)")
    parser.add_argument("--git-dir", help="repository directory name (overrides config)")
    commands = parser.add_subparsers(dest="command")
    commands.required = True

    init_parser = commands.add_parser("init")
    init_parser.set_defaults(func=cmd_init)

    cat_file_parser = commands.add_parser("cat-file")
    cat_file_parser.set_defaults(func=cmd_cat_file)
    cat_file_parser.add_argument("-p", dest="pretty_print", action="store_true", required=True)
    cat_file_parser.add_argument("object", type=_object_id)

    hash_object_parser = commands.add_parser("hash-object")
    hash_object_parser.set_defaults(func=cmd_hash_object)
    hash_object_parser.add_argument("-w", dest="write", action="store_true", help="store the object")
    hash_object_parser.add_argument(
        "-t", dest="kind", default=ObjectKind.BLOB.value, choices=[k.value for k in ObjectKind]
    )
    hash_object_parser.add_argument("file", type=Path)

    ls_tree_parser = commands.add_parser("ls-tree")
    ls_tree_parser.set_defaults(func=cmd_ls_tree)
    ls_tree_parser.add_argument("--name-only", action="store_true")
    ls_tree_parser.add_argument("tree", type=_object_id)

    config_parser = commands.add_parser("config")
    config_parser.set_defaults(func=cmd_config)
    config_parser.add_argument("--set-git-dir", dest="new_git_dir")
    config_parser.add_argument("--compression-level", type=int, choices=range(-1, 10))

    return parser


def cmd_init(args, settings: StoreSettings) -> None:
    repo = init_repo(args.root, settings)
    print(f"Initialized empty repository in {repo.resolve()}")


def cmd_cat_file(args, settings: StoreSettings) -> None:
    out = sys.stdout.buffer
    cat_file(args.root, args.object, out, settings)
    out.flush()


def cmd_hash_object(args, settings: StoreSettings) -> None:
    print(hash_file(args.root, args.file, write=args.write, kind=ObjectKind(args.kind), settings=settings))


def cmd_ls_tree(args, settings: StoreSettings) -> None:
    out = sys.stdout.buffer
    ls_tree(args.root, args.tree, out, name_only=args.name_only, settings=settings)
    out.flush()


def _load_settings() -> StoreSettings:
    try:
        return get_store_settings()
    except OSError as exc:
        raise IoFailure("load config", config_file(), str(exc)) from exc


def cmd_config(args, settings: StoreSettings) -> None:
    # stored values only; a one-off --git-dir is never saved
    stored = _load_settings()
    if args.new_git_dir or args.compression_level is not None:
        if args.new_git_dir:
            stored.git_dir = args.new_git_dir
        if args.compression_level is not None:
            stored.compression_level = args.compression_level
        try:
            remember_store_settings(stored)
        except OSError as exc:
            raise IoFailure("save config", config_file(), str(exc)) from exc
    print(f"git_dir = {stored.git_dir}")
    print(f"compression_level = {stored.compression_level}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = _load_settings()
        if args.git_dir:
            settings.git_dir = args.git_dir
        args.func(args, settings)
    except ObjectStoreError as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
