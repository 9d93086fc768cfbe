from __future__ import annotations

from pathlib import Path
from typing import Optional


class ObjectStoreError(Exception):
    """Base class for every failure raised by the object store."""


class IoFailure(ObjectStoreError):
    """A filesystem or stream operation failed (open/read/write/rename)."""

    def __init__(self, operation: str, path: Optional[Path] = None, detail: str = ""):
        self.operation = operation
        self.path = path
        msg = f"{operation} failed"
        if path is not None:
            msg += f" for {path}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class NotFound(ObjectStoreError):
    def __init__(self, digest: str, path: Path):
        self.digest = digest
        self.path = path
        super().__init__(f"object {digest} not found at {path}")


class InvalidObjectId(ObjectStoreError, ValueError):
    """Not a full 40-character lowercase hex object id."""


class UnsupportedKind(ObjectStoreError):
    """A well-formed object of a kind the requested operation cannot handle."""


class SizeMismatch(ObjectStoreError):
    """Declared size and actually readable content length disagree."""


# ─────────────────────────────────────────────────────────────────────────────
# Corruption: stored bytes do not follow the record or tree grammar
# ─────────────────────────────────────────────────────────────────────────────
class CorruptObject(ObjectStoreError):
    pass


class MissingHeaderTerminator(CorruptObject):
    pass


class MalformedHeader(CorruptObject):
    pass


class UnknownKind(CorruptObject):
    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"unknown object kind {tag!r}")


class InvalidSize(CorruptObject):
    pass


class OversizedContent(CorruptObject, SizeMismatch):
    """More content follows than the header declared."""


class TruncatedTreeEntry(CorruptObject):
    pass


class MalformedTreeEntry(CorruptObject):
    pass


class HashMismatch(CorruptObject):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"object {expected} hashes to {actual}")
