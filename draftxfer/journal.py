"""On-disk journal of per-block hashes, with cursors for walking its records."""

from __future__ import annotations

import copy
import enum
import os
import struct
import threading
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional, Sequence, Union

import cbor2

PathLike = Union[str, "os.PathLike[str]"]

JOURNAL_HEADER_OFFSET = 64
JOURNAL_BLOCK_SIZE = 512
JOURNAL_MAJOR_VERSION = 0
JOURNAL_MINOR_VERSION = 0
FILE_MAGIC = b"DRAFTJF "

_FILE_HEADER = struct.Struct("<8sQQ")
_OFF_T_MAX = (1 << 63) - 1


@dataclass
class FileStatus:
    """The subset of a file's stat data carried in a journal."""

    mode: int = 0
    uid: int = 0
    gid: int = 0
    dev: int = 0
    blk_size: int = 0
    blk_count: int = 0
    size: int = 0


@dataclass
class FileInfo:
    """A file taking part in a transfer, identified by ``id``."""

    path: str = ""
    target_suffix: str = ""
    status: FileStatus = field(default_factory=FileStatus)
    id: int = 0


@dataclass
class HashRecord:
    """One hashed block: 32 bytes on disk, little endian."""

    SIZE = 32

    hash: int = 0
    offset: int = 0
    size: int = 0
    file_id: int = 0

    _STRUCT = struct.Struct("<QQQH6x")

    def pack(self) -> bytes:
        try:
            return self._STRUCT.pack(self.hash, self.offset, self.size, self.file_id)
        except struct.error as exc:
            raise ValueError(f"hash record field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "HashRecord":
        if len(data) < cls.SIZE:
            raise ValueError(f"hash record needs {cls.SIZE} bytes, got {len(data)}")
        hash_value, offset, size, file_id = cls._STRUCT.unpack_from(data)
        return cls(hash_value, offset, size, file_id)


@dataclass
class Difference:
    """A block whose hashes differ between two journals (0 means absent)."""

    offset: int = 0
    size: int = 0
    hash_a: int = 0
    hash_b: int = 0
    file_id: int = 0


@dataclass
class JournalFileDiff:
    """All differences found between two journals."""

    diffs: list[Difference] = field(default_factory=list)


class Whence(enum.Enum):
    """Reference point of a cursor seek."""

    SET = 0
    CURRENT = 1
    END = 2


def _info_to_json(info: FileInfo) -> dict:
    st = info.status
    return {
        "path": info.path,
        "target_suffix": info.target_suffix,
        "status": {
            "mode": st.mode,
            "uid": st.uid,
            "gid": st.gid,
            "dev": st.dev,
            "blk_size": st.blk_size,
            "blk_count": st.blk_count,
            "size": st.size,
        },
        "id": info.id,
    }


def _info_from_json(obj: dict) -> FileInfo:
    st = obj["status"]
    return FileInfo(
        path=obj["path"],
        target_suffix=obj.get("target_suffix", ""),
        status=FileStatus(
            mode=st["mode"],
            uid=st["uid"],
            gid=st["gid"],
            dev=st["dev"],
            blk_size=st["blk_size"],
            blk_count=st["blk_count"],
            size=st["size"],
        ),
        id=obj["id"],
    )


def _read_exact(fd: int, size: int, offset: int) -> bytes:
    data = os.pread(fd, size, offset)
    if len(data) != size:
        raise ValueError(
            f"journal: short read of {len(data)} bytes (wanted {size}) at offset {offset}")
    return data


def _read_file_header(fd: int) -> tuple[bytes, int, int]:
    return _FILE_HEADER.unpack(_read_exact(fd, _FILE_HEADER.size, 0))


def _read_header_json(fd: int) -> dict:
    _, _, cbor_size = _read_file_header(fd)
    return cbor2.loads(_read_exact(fd, cbor_size, JOURNAL_HEADER_OFFSET))


def _record_count(fd: int, hash_offset: int) -> int:
    size = os.fstat(fd).st_size
    if size <= hash_offset:
        return 0
    return (size - hash_offset) // HashRecord.SIZE


class Journal:
    """A journal file: a CBOR header describing the files, then hash records.

    ``Journal(path)`` opens an existing journal read-only;
    :meth:`create` makes a new one for writing.
    """

    def __init__(self, path: PathLike) -> None:
        path = os.fspath(path)
        fd = os.open(path, os.O_RDONLY | os.O_CLOEXEC)
        try:
            self._check_file_header(fd)
        except BaseException:
            os.close(fd)
            raise
        self._setup(fd, path)

    def _setup(self, fd: int, path: str) -> None:
        self._fd: Optional[int] = fd
        self._path = path
        self._lock = threading.Lock()

    @classmethod
    def create(cls, path: PathLike, info: Sequence[FileInfo] = ()) -> "Journal":
        """Create a new journal at ``path`` (which must not exist) holding ``info``."""
        path = os.fspath(path)
        fd = os.open(path, os.O_RDWR | os.O_CLOEXEC | os.O_CREAT | os.O_EXCL, 0o644)
        journal = cls.__new__(cls)
        journal._setup(fd, path)
        try:
            journal._write_header(info)
        except BaseException:
            journal.close()
            raise
        return journal

    @property
    def path(self) -> str:
        return self._path

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise ValueError("journal is closed")
        return self._fd

    def _write_header(self, info: Sequence[FileInfo]) -> None:
        header = {
            "version_major": JOURNAL_MAJOR_VERSION,
            "version_minor": JOURNAL_MINOR_VERSION,
            "birthdate_epoch_nsec": time.time_ns(),
            "journal_alignment": JOURNAL_BLOCK_SIZE,
            "file_info": [_info_to_json(item) for item in info],
        }
        payload = cbor2.dumps(header)

        used = JOURNAL_HEADER_OFFSET + len(payload)
        total = (used + JOURNAL_BLOCK_SIZE - 1) & ~(JOURNAL_BLOCK_SIZE - 1)

        buf = bytearray(total)
        _FILE_HEADER.pack_into(buf, 0, FILE_MAGIC, total, len(payload))
        buf[JOURNAL_HEADER_OFFSET:used] = payload

        if hasattr(os, "posix_fallocate"):
            os.posix_fallocate(self.fd, 0, total)

        written = os.pwrite(self.fd, bytes(buf), 0)
        if written != total:
            raise OSError(f"journal: unable to write journal header of size {total}")

    @staticmethod
    def _check_file_header(fd: int) -> None:
        size = os.fstat(fd).st_size
        magic, journal_offset, cbor_size = _read_file_header(fd)

        if journal_offset >= _OFF_T_MAX:
            raise ValueError(
                f"journal: file header cbor payload size is too large: {cbor_size} "
                f"from offset {journal_offset}")

        if journal_offset > size:
            raise ValueError(
                f"journal: file header journal offset + cbor payload size "
                f"{journal_offset + cbor_size} is larger than journal file size {size}")

        if magic != FILE_MAGIC:
            raise ValueError(f"journal: file header has invalid magic: {magic.hex(' ')}")

    def file_info(self) -> list[FileInfo]:
        """Return the file descriptions stored in the header."""
        header = _read_header_json(self.fd)
        return [_info_from_json(item) for item in header["file_info"]]

    def creation_date(self) -> int:
        """Return the journal's creation time in nanoseconds since the Unix epoch."""
        return int(_read_header_json(self.fd)["birthdate_epoch_nsec"])

    def sync(self) -> None:
        os.fsync(self.fd)

    def write_hash(self, file_id: int, offset: int, size: int, hash_value: int) -> None:
        """Append a hash record for one block."""
        self.write_record(HashRecord(hash_value, offset, size, file_id))

    def write_record(self, record: HashRecord) -> None:
        """Append ``record`` to the end of the journal."""
        data = record.pack()
        with self._lock:
            os.lseek(self.fd, 0, os.SEEK_END)
            written = os.write(self.fd, data)
        if written != len(data):
            raise OSError(
                f"journal: unable to write hash record for file {record.file_id} "
                f"offset {record.offset} len {record.size} hash {record.hash:#x}")

    def hash_count(self) -> int:
        _, journal_offset, _ = _read_file_header(self.fd)
        return _record_count(self.fd, journal_offset)

    def cursor(self) -> "Cursor":
        """Return an unpositioned cursor over a fresh read-only handle."""
        return Cursor(open(self._path, "rb", buffering=0))

    def begin(self) -> "CursorIter":
        return CursorIter(self.cursor().seek(0, Whence.SET))

    def end(self) -> "CursorIter":
        return CursorIter(self.cursor().seek(0, Whence.END))

    def __iter__(self) -> Iterator[HashRecord]:
        it = self.begin()
        last = self.end()
        while it != last:
            yield it.record()
            it += 1

    def rename(self, path: PathLike) -> None:
        """Move the journal file to ``path``."""
        path = os.fspath(path)
        os.rename(self._path, path)
        self._path = path

    def close(self) -> None:
        fd, self._fd = getattr(self, "_fd", None), None
        if fd is not None:
            os.close(fd)

    def __enter__(self) -> "Journal":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self.close()
        except OSError:
            pass


class Cursor:
    """A position among a journal's hash records.

    An invalid cursor (position None) stays invalid under relative seeks;
    seek with ``Whence.SET`` or ``Whence.END`` to make it valid again.
    """

    def __init__(self, file: BinaryIO) -> None:
        self._file = file
        self._index: Optional[int] = None
        self._hash_offset = _read_file_header(file.fileno())[1]

    def _record_count(self) -> int:
        return _record_count(self._file.fileno(), self._hash_offset)

    def seek(self, count: int, whence: Whence = Whence.CURRENT) -> "Cursor":
        """Move by ``count`` records from ``whence``; returns the cursor."""
        idx = self._index
        total = self._record_count()
        if not total:
            return self

        dist = abs(count)

        if whence is Whence.SET:
            idx = None if count < 0 or dist > total else dist
        elif whence is Whence.CURRENT:
            if count < 0:
                if idx is None:
                    idx = None if dist > total else total - dist
                elif dist > idx:
                    idx = None
                else:
                    idx -= dist
            elif idx is None or idx + dist >= total:
                idx = None
            else:
                idx += dist
        else:
            idx = None if count >= 0 or dist > total else total - dist

        self._index = idx
        return self

    def valid(self) -> bool:
        total = self._record_count()
        return bool(total) and self._index is not None and self._index < total

    def hash_record(self) -> Optional[HashRecord]:
        """Return the record under the cursor, or None when invalid."""
        if not self.valid():
            return None
        offset = self._hash_offset + self._index * HashRecord.SIZE
        return HashRecord.unpack(_read_exact(self._file.fileno(), HashRecord.SIZE, offset))

    def position(self) -> Optional[int]:
        return self._index


class CursorIter:
    """An iterator-like handle over journal records, compared by position."""

    def __init__(self, cursor: Cursor) -> None:
        self._cursor = cursor

    def record(self) -> HashRecord:
        """Return the record at this position; raise IndexError when out of range."""
        rec = self._cursor.hash_record()
        if rec is None:
            raise IndexError("journal: out of range access")
        return rec

    def __iadd__(self, offset: int) -> "CursorIter":
        self._cursor.seek(offset)
        return self

    def __isub__(self, offset: int) -> "CursorIter":
        self._cursor.seek(-offset)
        return self

    def __add__(self, offset: int) -> "CursorIter":
        result = self.copy()
        result += offset
        return result

    def __sub__(self, offset: int) -> "CursorIter":
        result = self.copy()
        result -= offset
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CursorIter):
            return NotImplemented
        return self._cursor.position() == other._cursor.position()

    __hash__ = None  # type: ignore[assignment]

    def copy(self) -> "CursorIter":
        return CursorIter(copy.copy(self._cursor))