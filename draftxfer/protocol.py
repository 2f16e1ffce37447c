"""Wire headers for the control channel and for data chunks."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

_U64 = 0xFFFF_FFFF_FFFF_FFFF


class ChunkFlag(enum.IntFlag):
    """Flags carried in a chunk header."""

    NONE = 0
    MORE = 1


def _pack(fmt: struct.Struct, *values: int) -> bytes:
    try:
        return fmt.pack(*values)
    except struct.error as exc:
        raise ValueError(f"header field out of range: {exc}") from exc


@dataclass
class Frame:
    """Control protocol frame header (24 bytes, little endian)."""

    MAGIC = 0x55AA_AA55_C721_A000
    MAGIC_VERSION_MASK = 0xFFF
    MAGIC_MASK = ~MAGIC_VERSION_MASK & _U64
    SIZE = 24

    magic: int = MAGIC
    payload_length: int = 0

    _STRUCT = struct.Struct("<QQ8x")

    @property
    def version(self) -> int:
        return self.magic & self.MAGIC_VERSION_MASK

    def pack(self) -> bytes:
        return _pack(self._STRUCT, self.magic, self.payload_length)

    @classmethod
    def unpack(cls, data: bytes) -> "Frame":
        if len(data) < cls.SIZE:
            raise ValueError(f"frame header needs {cls.SIZE} bytes, got {len(data)}")
        magic, payload_length = cls._STRUCT.unpack_from(data)
        if magic & cls.MAGIC_MASK != cls.MAGIC & cls.MAGIC_MASK:
            raise ValueError(f"invalid frame magic: {magic:#018x}")
        return cls(magic, payload_length)


@dataclass
class ChunkHeader:
    """Data chunk header, padded to one 4096-byte block."""

    BLOCK_SIZE = 4096
    UNALIGNED_SIZE = 32

    MAGIC = 0x55AA_AA55_DA7A_0000
    MAGIC_VERSION_MASK = 0xFFFF
    MAGIC_MASK = ~MAGIC_VERSION_MASK & _U64

    magic: int = MAGIC
    file_offset: int = 0
    payload_length: int = 0
    file_id: int = 0
    flags: int = ChunkFlag.NONE

    _STRUCT = struct.Struct("<QQQHB3x")

    @property
    def version(self) -> int:
        return self.magic & self.MAGIC_VERSION_MASK

    @property
    def more(self) -> bool:
        return bool(self.flags & ChunkFlag.MORE)

    def pack(self) -> bytes:
        head = _pack(
            self._STRUCT,
            self.magic,
            self.file_offset,
            self.payload_length,
            self.file_id,
            int(self.flags),
        )
        return head.ljust(self.BLOCK_SIZE, b"\0")

    @classmethod
    def unpack(cls, data: bytes) -> "ChunkHeader":
        if len(data) < cls.UNALIGNED_SIZE:
            raise ValueError(
                f"chunk header needs {cls.UNALIGNED_SIZE} bytes, got {len(data)}")
        magic, offset, length, file_id, flags = cls._STRUCT.unpack_from(data)
        if magic & cls.MAGIC_MASK != cls.MAGIC & cls.MAGIC_MASK:
            raise ValueError(f"invalid chunk magic: {magic:#018x}")
        return cls(magic, offset, length, file_id, ChunkFlag(flags))


UNALIGNED_CHUNK_HEADER_SIZE = ChunkHeader.UNALIGNED_SIZE