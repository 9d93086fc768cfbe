from __future__ import annotations

import hashlib
import io
import logging
import re
import tempfile
import zlib
from pathlib import Path
from typing import BinaryIO

from objrepo.errors import HashMismatch, InvalidObjectId, IoFailure, NotFound
from objrepo.storage.codec import CHUNK_SIZE, NullSink, decode_object, encode_object, object_header
from shared.models import Object, ObjectKind

logger = logging.getLogger(__name__)

_DIGEST_RE = re.compile(r"[0-9a-f]{40}")
OBJECT_MODE = 0o444


def validate_digest(digest: str) -> str:
    if not isinstance(digest, str) or not _DIGEST_RE.fullmatch(digest):
        raise InvalidObjectId(f"not a full 40-character hex object id: {digest!r}")
    return digest


def object_path(objects_dir: Path, digest: str) -> Path:
    validate_digest(digest)
    return objects_dir / digest[:2] / digest[2:]


def has_object(objects_dir: Path, digest: str) -> bool:
    return object_path(objects_dir, digest).is_file()


def get_object(objects_dir: Path, digest: str) -> Object:
    """
    Open objects/<hh>/<rest> and decode its header.
    The returned object streams its content lazily; close it when done.
    """
    src = object_path(objects_dir, digest)
    try:
        raw = src.open("rb")
    except FileNotFoundError:
        raise NotFound(digest, src) from None
    except OSError as exc:
        raise IoFailure("open", src, str(exc)) from exc
    obj = decode_object(raw)
    logger.debug("Read %s %s (%d bytes)", obj.kind, digest[:8], obj.expected_size)
    return obj


def get_bytes(objects_dir: Path, digest: str) -> tuple[ObjectKind, bytes]:
    with get_object(objects_dir, digest) as obj:
        return obj.kind, obj.read()


def put_object(
    objects_dir: Path,
    kind: ObjectKind,
    size: int,
    source: BinaryIO,
    write: bool = True,
    level: int = zlib.Z_DEFAULT_COMPRESSION,
) -> str:
    """
    Store `size` bytes from `source` as a `kind` object under objects/<hh>/<rest>.
    Returns the sha1 hex digest (object id).

    The record is compressed into a temporary file inside objects_dir and
    renamed into place only once complete. With write=False nothing touches
    the filesystem and only the id is computed.
    """
    if not write:
        return encode_object(kind, size, source, NullSink(), level)

    if not objects_dir.is_dir():
        raise IoFailure("open", objects_dir, "objects directory does not exist")
    try:
        tmp_file = tempfile.NamedTemporaryFile(dir=objects_dir, prefix="tmp_obj_", delete=False)
    except OSError as exc:
        raise IoFailure("create", objects_dir, str(exc)) from exc

    tmp = Path(tmp_file.name)
    try:
        with tmp_file:
            try:
                digest = encode_object(kind, size, source, tmp_file, level)
            except OSError as exc:
                raise IoFailure("write", tmp, str(exc)) from exc
        dst = object_path(objects_dir, digest)
        try:
            dst.parent.mkdir(exist_ok=True)
            # stored objects are read-only
            tmp.chmod(OBJECT_MODE)
            tmp.replace(dst)
        except OSError as exc:
            raise IoFailure("rename", dst, str(exc)) from exc
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Stored %s %s (%d bytes)", kind, digest[:8], size)
    return digest


def put_bytes(
    objects_dir: Path,
    data: bytes,
    kind: ObjectKind = ObjectKind.BLOB,
    write: bool = True,
    level: int = zlib.Z_DEFAULT_COMPRESSION,
) -> str:
    return put_object(objects_dir, kind, len(data), io.BytesIO(data), write=write, level=level)


def put_file(
    objects_dir: Path,
    path: Path,
    kind: ObjectKind = ObjectKind.BLOB,
    write: bool = True,
    level: int = zlib.Z_DEFAULT_COMPRESSION,
) -> str:
    try:
        size = path.stat().st_size
        f = path.open("rb")
    except OSError as exc:
        raise IoFailure("open", path, str(exc)) from exc
    with f:
        return put_object(objects_dir, kind, size, f, write=write, level=level)


def verify_object(objects_dir: Path, digest: str) -> None:
    """Re-hash a stored object and check it still matches its name."""
    with get_object(objects_dir, digest) as obj:
        hasher = hashlib.sha1(object_header(obj.kind, obj.expected_size))
        while True:
            chunk = obj.content.read(CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    actual = hasher.hexdigest()
    if actual != digest:
        raise HashMismatch(digest, actual)
