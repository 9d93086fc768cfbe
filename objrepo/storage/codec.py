"""
Loose object record format.

A record is `<kind> <decimal size>\\0<content>`, zlib-compressed as a whole.
The SHA-1 of the uncompressed record is the object's id.
"""
from __future__ import annotations

import hashlib
import io
import sys
import zlib
from typing import BinaryIO

from objrepo.errors import (
    CorruptObject,
    InvalidSize,
    IoFailure,
    MalformedHeader,
    MissingHeaderTerminator,
    OversizedContent,
    SizeMismatch,
    UnknownKind,
)
from objrepo.storage.bounded import BoundedReader
from shared.models import Object, ObjectKind

CHUNK_SIZE = 64 * 1024
# "commit" plus a space plus a 20-digit size fits comfortably
HEADER_LIMIT = 64


def object_header(kind: ObjectKind, size: int) -> bytes:
    return f"{kind} {size}\0".encode("ascii")


def hash_content(kind: ObjectKind, data: bytes) -> str:
    return hashlib.sha1(object_header(kind, len(data)) + data).hexdigest()


# ─────────────────────────────────────────────────────────────────────────────
# Decode
# ─────────────────────────────────────────────────────────────────────────────
class ZlibReader(io.RawIOBase):
    """Streaming zlib decompression of a raw binary file."""

    def __init__(self, raw: BinaryIO):
        super().__init__()
        self._raw = raw
        self._decomp = zlib.decompressobj()

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        size = len(buffer)
        if size == 0:
            return 0
        while not self._decomp.eof:
            src = self._decomp.unconsumed_tail
            if not src:
                try:
                    src = self._raw.read(CHUNK_SIZE)
                except OSError as exc:
                    raise IoFailure("read", getattr(self._raw, "name", None), str(exc)) from exc
                if not src:
                    raise CorruptObject("compressed stream ended unexpectedly")
            try:
                out = self._decomp.decompress(src, size)
            except zlib.error as exc:
                raise CorruptObject(f"bad compressed data: {exc}") from exc
            if out:
                buffer[: len(out)] = out
                return len(out)
        return 0

    def close(self) -> None:
        if not self.closed:
            self._raw.close()
        super().close()


def _read_header(stream: BinaryIO) -> bytes:
    header = bytearray()
    while len(header) < HEADER_LIMIT:
        b = stream.read(1)
        if not b:
            raise MissingHeaderTerminator("stream ended before the header terminator")
        if b == b"\0":
            return bytes(header)
        header += b
    raise MissingHeaderTerminator(f"no header terminator within {HEADER_LIMIT} bytes")


def parse_header(header: bytes) -> tuple[ObjectKind, int]:
    """Split `<kind> <size>` into its typed parts."""
    try:
        text = header.decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedHeader(f"header is not ASCII: {header!r}") from exc

    tag, sep, size_text = text.partition(" ")
    if not sep or not tag:
        raise MalformedHeader(f"header is not '<kind> <size>': {text!r}")

    try:
        kind = ObjectKind(tag)
    except ValueError:
        raise UnknownKind(tag) from None

    # str.isdigit accepts non-ASCII digits too; the text is already ASCII
    if not size_text.isdigit():
        raise InvalidSize(f"size is not a decimal number: {size_text!r}")
    size = int(size_text)
    if size > sys.maxsize:
        raise InvalidSize(f"size {size} exceeds the addressable range")
    return kind, size


def decode_object(raw: BinaryIO) -> Object:
    """Decode a compressed record; the returned object owns `raw`."""
    stream = io.BufferedReader(ZlibReader(raw), CHUNK_SIZE)
    try:
        kind, size = parse_header(_read_header(stream))
        if size == 0 and stream.read(1):
            raise OversizedContent("empty object carries trailing content")
    except BaseException:
        stream.close()
        raise
    return Object(kind=kind, expected_size=size, content=BoundedReader(stream, size))


# ─────────────────────────────────────────────────────────────────────────────
# Encode
# ─────────────────────────────────────────────────────────────────────────────
class HashingWriter:
    """Feeds everything written to a SHA-1 and, compressed, to `sink`."""

    def __init__(self, sink: BinaryIO, level: int = zlib.Z_DEFAULT_COMPRESSION):
        self._sink = sink
        self._hasher = hashlib.sha1()
        self._compressor = zlib.compressobj(level)

    def write(self, data: bytes) -> int:
        self._hasher.update(data)
        self._sink.write(self._compressor.compress(data))
        return len(data)

    def finish(self) -> str:
        self._sink.write(self._compressor.flush())
        return self._hasher.hexdigest()


class NullSink:
    """Write target that discards everything, for dry-run hashing."""

    def write(self, data: bytes) -> int:
        return len(data)


def encode_object(
    kind: ObjectKind,
    size: int,
    source: BinaryIO,
    sink: BinaryIO,
    level: int = zlib.Z_DEFAULT_COMPRESSION,
) -> str:
    """Write the compressed record for `source` to `sink` and return its id.

    `source` must yield exactly `size` bytes.
    """
    if size < 0:
        raise InvalidSize(f"negative size {size}")
    writer = HashingWriter(sink, level)
    writer.write(object_header(kind, size))

    copied = 0
    while True:
        try:
            chunk = source.read(CHUNK_SIZE)
        except OSError as exc:
            raise IoFailure("read", getattr(source, "name", None), str(exc)) from exc
        if not chunk:
            break
        copied += len(chunk)
        if copied > size:
            raise SizeMismatch(f"source is longer than the declared {size} bytes")
        writer.write(chunk)
    if copied != size:
        raise SizeMismatch(f"source yielded {copied} bytes, {size} declared")
    return writer.finish()
