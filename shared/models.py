from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO


class ObjectKind(str, Enum):
    BLOB = 'blob'
    TREE = 'tree'
    COMMIT = 'commit'

    def __str__(self) -> str:
        return self.value


@dataclass
class Object:
    """A decoded loose object.

    `content` yields exactly `expected_size` bytes and then ends. It is
    forward-only and backed by an open file, so close the object (or use it
    as a context manager) once done.
    """

    kind: ObjectKind
    expected_size: int
    content: BinaryIO = field(repr=False)

    def read(self) -> bytes:
        return self.content.read()

    def close(self) -> None:
        self.content.close()

    def __enter__(self) -> 'Object':
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True)
class TreeEntry:
    """One `<mode> <name>\\0<hash>` record of a tree object."""

    mode: str
    name: bytes  # raw path component, not guaranteed UTF-8
    child_hash: str


@dataclass(frozen=True)
class TreeRow:
    """A tree entry with its child's kind resolved, as shown by ls-tree."""

    mode: str
    kind: ObjectKind
    child_hash: str
    name: bytes

    def render(self) -> bytes:
        meta = f'{self.mode:0>6} {self.kind} {self.child_hash}\t'
        return meta.encode('ascii') + self.name
