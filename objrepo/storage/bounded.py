from __future__ import annotations

import io
from typing import BinaryIO

from objrepo.errors import OversizedContent, SizeMismatch


class BoundedReader(io.RawIOBase):
    """
    Forward-only reader yielding exactly `limit` bytes of `source`.

    Running out early raises SizeMismatch. Once the budget is spent the
    source must be at end of stream too, otherwise OversizedContent.
    """

    def __init__(self, source: BinaryIO, limit: int):
        super().__init__()
        self._source = source
        self.remaining = limit

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.remaining == 0 or len(buffer) == 0:
            return 0
        want = min(len(buffer), self.remaining)
        data = self._source.read(want)
        n = len(data)
        if n > want:
            raise OversizedContent(f"source produced {n} bytes, {want} requested")
        if n == 0:
            raise SizeMismatch(f"content ended {self.remaining} bytes short of its declared size")
        buffer[:n] = data
        self.remaining -= n
        if self.remaining == 0 and self._source.read(1):
            raise OversizedContent("content continues past its declared size")
        return n

    def close(self) -> None:
        if not self.closed:
            self._source.close()
        super().close()
