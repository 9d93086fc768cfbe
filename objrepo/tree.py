from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Union

from objrepo.errors import MalformedTreeEntry, TruncatedTreeEntry, UnsupportedKind
from objrepo.storage.cas import get_object, put_bytes
from shared.models import ObjectKind, TreeEntry, TreeRow

logger = logging.getLogger(__name__)

HASH_BYTES = 20


def _buffered(content: Union[bytes, BinaryIO]) -> BinaryIO:
    if isinstance(content, (bytes, bytearray)):
        return io.BytesIO(content)
    if isinstance(content, io.RawIOBase):
        return io.BufferedReader(content)
    return content


def _read_entry_field(stream: BinaryIO) -> bytes | None:
    """Read up to the NUL ending `<mode> <name>`. None at a clean end of data."""
    field = bytearray()
    while True:
        b = stream.read(1)
        if not b:
            if field:
                raise TruncatedTreeEntry(f"tree entry {bytes(field)!r} has no terminator")
            return None
        if b == b"\0":
            return bytes(field)
        field += b


def _split_mode_and_name(field: bytes) -> tuple[str, bytes]:
    mode, sep, name = field.partition(b" ")
    if not sep:
        raise MalformedTreeEntry(f"tree entry {field!r} has no mode separator")
    if not mode or not name:
        raise MalformedTreeEntry(f"tree entry {field!r} has an empty mode or name")
    try:
        return mode.decode("ascii"), name
    except UnicodeDecodeError as exc:
        raise MalformedTreeEntry(f"tree entry mode {mode!r} is not ASCII") from exc


def iter_tree(content: Union[bytes, BinaryIO]) -> Iterator[TreeEntry]:
    """
    Yield the entries of a tree object's content in on-disk order.

    Each entry is `<mode> <name>\\0` followed by 20 raw hash bytes. Data
    ending exactly at an entry boundary ends the iteration.
    """
    stream = _buffered(content)
    while True:
        field = _read_entry_field(stream)
        if field is None:
            return
        mode, name = _split_mode_and_name(field)
        raw_hash = stream.read(HASH_BYTES)
        if len(raw_hash) != HASH_BYTES:
            raise TruncatedTreeEntry(
                f"tree entry {name!r} has {len(raw_hash)} of {HASH_BYTES} hash bytes"
            )
        yield TreeEntry(mode=mode, name=name, child_hash=raw_hash.hex())


def parse_tree(content: Union[bytes, BinaryIO]) -> list[TreeEntry]:
    return list(iter_tree(content))


def read_tree(objects_dir: Path, digest: str) -> list[TreeEntry]:
    with get_object(objects_dir, digest) as obj:
        if obj.kind is not ObjectKind.TREE:
            raise UnsupportedKind(f"{digest} is a {obj.kind}, not a tree")
        return parse_tree(obj.content)


def describe_tree(objects_dir: Path, digest: str) -> list[TreeRow]:
    """
    List a tree with each child's kind resolved.

    Every entry costs one extra object read; a child that cannot be read
    fails the whole listing.
    """
    rows = []
    for entry in read_tree(objects_dir, digest):
        with get_object(objects_dir, entry.child_hash) as child:
            kind = child.kind
        rows.append(TreeRow(mode=entry.mode, kind=kind, child_hash=entry.child_hash, name=entry.name))
    logger.debug("Described tree %s (%d entries)", digest[:8], len(rows))
    return rows


# ─────────────────────────────────────────────────────────────────────────────
# Writing
# ─────────────────────────────────────────────────────────────────────────────
def encode_tree(entries: Iterable[TreeEntry]) -> bytes:
    """Serialize entries sorted by name."""
    out = bytearray()
    for entry in sorted(entries, key=lambda e: e.name):
        out += entry.mode.encode("ascii") + b" " + entry.name + b"\0"
        out += bytes.fromhex(entry.child_hash)
    return bytes(out)


def write_tree(objects_dir: Path, entries: Iterable[TreeEntry], write: bool = True) -> str:
    return put_bytes(objects_dir, encode_tree(entries), kind=ObjectKind.TREE, write=write)
