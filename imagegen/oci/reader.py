import hashlib
import io
from typing import BinaryIO, Iterable


class HashingReader:
    """Reader that keeps a sha256 hash and a byte count of everything read.

    The hash and count are updated with exactly the bytes handed to the
    caller, so partial reads and any chunk size give the same result as
    hashing the whole stream at once.
    """

    algorithm = "sha256"

    def __init__(self, base: BinaryIO):
        self._base = base
        self._hash = hashlib.sha256()
        self._n = 0

    def read(self, size: int = -1) -> bytes:
        data = self._base.read(size)
        if data:
            self._hash.update(data)
            self._n += len(data)
        return data

    @property
    def n(self) -> int:
        """Total number of bytes read so far."""
        return self._n

    @property
    def hash(self):
        return self._hash

    @property
    def digest(self) -> str:
        return f"{self.algorithm}:{self._hash.hexdigest()}"


class IterReader(io.RawIOBase):
    """Adapt an iterator of byte chunks to a readable stream."""

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks = iter(chunks)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size
