"""Growable byte buffers and a fixed-size pool of reusable chunks."""

from __future__ import annotations

import threading
from typing import Optional, Union

BytesSource = Union[None, int, "Buffer", bytes, bytearray, memoryview]


class Buffer:
    """An owned, resizable block of bytes.

    ``Buffer()`` is empty, ``Buffer(n)`` holds ``n`` zero bytes and
    ``Buffer(data)`` holds a copy of ``data`` (another buffer or any
    bytes-like object).
    """

    __slots__ = ("data",)

    def __init__(self, source: BytesSource = None) -> None:
        self.data: Optional[bytearray] = None

        if source is None:
            return

        if isinstance(source, int) and not isinstance(source, bool):
            self.data = self._allocate(source)
            return

        if isinstance(source, Buffer):
            payload = source.tobytes()
        else:
            payload = bytes(source)

        if payload:
            self.data = bytearray(payload)

    @staticmethod
    def _allocate(size: int) -> bytearray:
        if size < 0:
            raise ValueError(f"buffer size must not be negative: {size}")
        try:
            return bytearray(size)
        except (OverflowError, MemoryError) as exc:
            raise MemoryError(f"unable to allocate buffer of {size} bytes") from exc

    def resize(self, size: int) -> None:
        """Grow or shrink the buffer, keeping the leading bytes."""
        if size < 0:
            raise ValueError(f"buffer size must not be negative: {size}")

        if size == 0:
            self.data = None
            return

        current = self.data if self.data is not None else bytearray()
        if size <= len(current):
            del current[size:]
        else:
            try:
                current.extend(bytes(size - len(current)))
            except (OverflowError, MemoryError) as exc:
                raise MemoryError(f"unable to resize buffer to {size} bytes") from exc
        self.data = current

    def tobytes(self) -> bytes:
        """Return a copy of the contents."""
        return bytes(self.data) if self.data is not None else b""

    def __len__(self) -> int:
        return len(self.data) if self.data is not None else 0

    def __bool__(self) -> bool:
        return self.data is not None

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Buffer):
            return self.tobytes() == other.tobytes()
        if isinstance(other, (bytes, bytearray, memoryview)):
            return self.tobytes() == bytes(other)
        return NotImplemented

    def __copy__(self) -> "Buffer":
        return Buffer(self)

    def __repr__(self) -> str:
        return f"Buffer(size={len(self)})"


class FreeList:
    """An intrusive list of free slot indices, handed out last-in first-out."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("a free list needs at least one slot")
        self._next: list[Optional[int]] = list(range(1, size))
        self._next.append(None)
        self._free: Optional[int] = 0

    def get(self) -> Optional[int]:
        """Take a free index, or return None when every slot is in use."""
        index = self._free
        if index is None:
            return None
        self._free = self._next[index]
        return index

    def put(self, index: int) -> None:
        """Return an index to the list; it is the next one handed out."""
        if not 0 <= index < len(self._next):
            raise IndexError(f"free list index out of range: {index}")
        self._next[index] = self._free
        self._free = index


class PooledBuffer:
    """A chunk borrowed from a :class:`BufferPool`.

    The chunk returns to its pool on :meth:`release`, at the end of a
    ``with`` block, or when the object is garbage collected. An empty
    instance (no pool) is falsy.
    """

    __slots__ = ("data", "index", "_pool")

    def __init__(
        self,
        pool: Optional["BufferPool"] = None,
        index: int = 0,
        data: Optional[memoryview] = None,
    ) -> None:
        self._pool = pool
        self.index = index
        self.data = data

    def release(self) -> None:
        """Give the chunk back to its pool; later calls do nothing."""
        pool, self._pool = self._pool, None
        if self.data is not None:
            self.data.release()
        self.data = None
        if pool is not None:
            pool._put(self.index)

    def __bool__(self) -> bool:
        return self.data is not None

    def __len__(self) -> int:
        return len(self.data) if self.data is not None else 0

    def __enter__(self) -> "PooledBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        try:
            self.release()
        except Exception:
            pass


class BufferPool:
    """A fixed set of equally sized chunks carved from one allocation."""

    def __init__(self, chunk_size: int, count: int) -> None:
        if chunk_size < 1:
            raise ValueError("buffer pool chunk size must be positive")
        if count < 1:
            raise ValueError("buffer pool must hold at least one chunk")

        self.chunk_size = chunk_size
        self.count = count
        self._memory = bytearray(chunk_size * count)
        self._view = memoryview(self._memory)
        self._free = FreeList(count)
        self._cond = threading.Condition()
        self._done = False

    def get(self, timeout: Optional[float] = None) -> PooledBuffer:
        """Borrow a chunk, waiting up to ``timeout`` seconds (forever if None).

        Returns an empty :class:`PooledBuffer` on timeout or once the pool
        is closed.
        """
        index: Optional[int] = None

        def ready() -> bool:
            nonlocal index
            if self._done:
                return True
            index = self._free.get()
            return index is not None

        with self._cond:
            if not self._cond.wait_for(ready, timeout):
                return PooledBuffer()
            if self._done or index is None:
                return PooledBuffer()

        start = index * self.chunk_size
        return PooledBuffer(self, index, self._view[start:start + self.chunk_size])

    def close(self) -> None:
        """Wake every waiter; further gets return empty buffers."""
        with self._cond:
            self._done = True
            self._cond.notify_all()

    def _put(self, index: int) -> None:
        if self._done:
            return
        with self._cond:
            self._free.put(index)
            self._cond.notify()

    def __enter__(self) -> "BufferPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()