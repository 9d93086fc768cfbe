import hashlib
import io
import os
import shutil
import zlib
from pathlib import Path

import pytest

from objrepo.errors import HashMismatch, InvalidObjectId, IoFailure, NotFound, OversizedContent, SizeMismatch
from objrepo.storage.cas import (
    get_bytes,
    get_object,
    has_object,
    object_path,
    put_bytes,
    put_file,
    put_object,
    validate_digest,
    verify_object,
)
from shared.models import ObjectKind


@pytest.fixture
def objects(tmp_path: Path) -> Path:
    d = tmp_path / "objects"
    d.mkdir()
    return d


def stored_files(objects: Path) -> list[Path]:
    return sorted(p for p in objects.rglob("*") if p.is_file())


def test_write_then_inspect(objects: Path):
    digest = put_object(objects, ObjectKind.BLOB, 5, io.BytesIO(b"hello"))
    assert digest == hashlib.sha1(b"blob 5\0hello").hexdigest()
    with get_object(objects, digest) as obj:
        assert obj.kind is ObjectKind.BLOB
        assert obj.expected_size == 5
        assert obj.read() == b"hello"


def test_sharded_layout(objects: Path):
    digest = put_bytes(objects, b"layout")
    path = objects / digest[:2] / digest[2:]
    assert object_path(objects, digest) == path
    assert path.is_file()
    assert len(path.name) == 38
    assert zlib.decompress(path.read_bytes()) == b"blob 6\0layout"
    assert has_object(objects, digest)


@pytest.mark.parametrize("kind", list(ObjectKind))
@pytest.mark.parametrize("content", [b"", b"x", b"\0\xff\0 binary", os.urandom(200_000)])
def test_round_trip(objects: Path, kind: ObjectKind, content: bytes):
    digest = put_bytes(objects, content, kind=kind)
    assert get_bytes(objects, digest) == (kind, content)
    header = f"{kind} {len(content)}\0".encode()
    assert digest == hashlib.sha1(header + content).hexdigest()


def test_put_is_idempotent(objects: Path):
    first = put_bytes(objects, b"same content")
    before = {p: p.read_bytes() for p in stored_files(objects)}
    second = put_bytes(objects, b"same content")
    assert first == second
    after = {p: p.read_bytes() for p in stored_files(objects)}
    assert before == after
    assert not list(objects.glob("tmp_obj_*"))


def test_dry_run_touches_nothing(objects: Path):
    dry = put_bytes(objects, b"preview", write=False)
    assert stored_files(objects) == []
    assert put_bytes(objects, b"preview") == dry


def test_dry_run_without_objects_dir(tmp_path: Path):
    digest = put_bytes(tmp_path / "missing", b"preview", write=False)
    assert digest == hashlib.sha1(b"blob 7\0preview").hexdigest()


def test_put_into_missing_store_is_io_failure(tmp_path: Path):
    with pytest.raises(IoFailure):
        put_bytes(tmp_path / "missing", b"data")


def test_failed_put_leaves_nothing_behind(objects: Path):
    with pytest.raises(SizeMismatch):
        put_object(objects, ObjectKind.BLOB, 10, io.BytesIO(b"short"))
    assert stored_files(objects) == []


def test_put_file(objects: Path, tmp_path: Path):
    f = tmp_path / "readme.txt"
    f.write_bytes(b"file body\n")
    digest = put_file(objects, f)
    assert get_bytes(objects, digest) == (ObjectKind.BLOB, b"file body\n")


def test_put_missing_file(objects: Path, tmp_path: Path):
    with pytest.raises(IoFailure):
        put_file(objects, tmp_path / "nope.txt")


def test_missing_object_is_not_found(objects: Path):
    with pytest.raises(NotFound) as info:
        get_object(objects, "0" * 40)
    assert info.value.digest == "0" * 40


@pytest.mark.parametrize("digest", ["abc123", "A" * 40, "g" * 40, "0" * 41, ""])
def test_rejects_invalid_object_ids(objects: Path, digest: str):
    with pytest.raises(InvalidObjectId):
        get_object(objects, digest)
    with pytest.raises(ValueError):
        validate_digest(digest)


def test_detects_content_longer_than_declared(objects: Path):
    digest = hashlib.sha1(b"blob 3\0hello").hexdigest()
    path = objects / digest[:2] / digest[2:]
    path.parent.mkdir()
    path.write_bytes(zlib.compress(b"blob 3\0hello"))
    with pytest.raises(OversizedContent):
        get_bytes(objects, digest)


def test_verify_object(objects: Path):
    digest = put_bytes(objects, b"verified")
    verify_object(objects, digest)

    other = "f" * 40
    dst = object_path(objects, other)
    dst.parent.mkdir(exist_ok=True)
    shutil.copy(object_path(objects, digest), dst)
    with pytest.raises(HashMismatch) as info:
        verify_object(objects, other)
    assert info.value.actual == digest


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_stored_objects_are_read_only_for_everyone(objects: Path):
    digest = put_bytes(objects, b"shared store")
    assert object_path(objects, digest).stat().st_mode & 0o777 == 0o444
    # storing it again replaces the read-only file
    assert put_bytes(objects, b"shared store") == digest


def test_unopenable_object_is_io_failure(objects: Path):
    digest = "ab" + "0" * 38
    object_path(objects, digest).mkdir(parents=True)
    with pytest.raises(IoFailure) as info:
        get_object(objects, digest)
    assert info.value.operation == "open"
    assert not isinstance(info.value, NotFound)


class FailingSource(io.BytesIO):
    def read(self, n=-1):
        raise OSError("device unplugged")


def test_failing_source_is_read_failure(objects: Path):
    with pytest.raises(IoFailure) as info:
        put_object(objects, ObjectKind.BLOB, 4, FailingSource(b"data"))
    assert info.value.operation == "read"
    assert stored_files(objects) == []
