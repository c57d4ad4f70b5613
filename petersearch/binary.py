"""Little-endian binary encoding of integers and length-prefixed byte strings."""

from __future__ import annotations

import struct
from typing import BinaryIO


class TruncatedDataError(ValueError):
    """Raised when a value is cut off part way through by the end of the stream."""


_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")


class CountingWriter:
    """Wraps a binary stream and keeps count of every byte written through it."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.total = 0

    def write(self, data: bytes) -> int:
        self.total += len(data)
        self._stream.write(data)
        return len(data)

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        self._stream.flush()
        self._stream.close()

    def __enter__(self) -> "CountingWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ByteWriter:
    """Writes fixed-width integers and length-prefixed byte strings."""

    def __init__(self, stream: BinaryIO | CountingWriter) -> None:
        self._stream = stream

    def write(self, data: bytes) -> int:
        self._stream.write(data)
        return len(data)

    def write_bytes(self, data: bytes) -> None:
        """Write ``data`` preceded by its length as an unsigned 64-bit integer."""
        self._stream.write(_U64.pack(len(data)))
        self._stream.write(data)

    def write_compact_bytes(self, data: bytes) -> None:
        """Write ``data`` preceded by its length as an unsigned 16-bit integer."""
        self._stream.write(_U16.pack(len(data)))
        self._stream.write(data)

    def write_string(self, s: str) -> None:
        self.write_bytes(s.encode("utf-8"))

    def write_compact_string(self, s: str) -> None:
        self.write_compact_bytes(s.encode("utf-8"))

    def write_int(self, value: int) -> None:
        self._stream.write(_I64.pack(value))

    def write_uint64(self, value: int) -> None:
        self._stream.write(_U64.pack(value))

    def write_uint32(self, value: int) -> None:
        self._stream.write(_U32.pack(value))

    def write_uint16(self, value: int) -> None:
        self._stream.write(_U16.pack(value))

    def write_uint8(self, value: int) -> None:
        self._stream.write(_U8.pack(value))

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "ByteWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ByteReader:
    """Reads values written by :class:`ByteWriter`.

    A read that finds the stream already exhausted raises :class:`EOFError`;
    one that finds only part of a value raises :class:`TruncatedDataError`.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read_exact(self, size: int) -> bytes:
        if size == 0:
            return b""
        chunks = []
        remaining = size
        while remaining:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if not data:
            raise EOFError("end of stream")
        if len(data) < size:
            raise TruncatedDataError(f"expected {size} bytes, got {len(data)}")
        return data

    def _unpack(self, fmt: struct.Struct) -> int:
        return fmt.unpack(self._read_exact(fmt.size))[0]

    def read_bytes(self) -> bytes:
        return self._read_exact(self._unpack(_U64))

    def read_compact_bytes(self) -> bytes:
        return self._read_exact(self._unpack(_U16))

    def read_string(self) -> str:
        return self.read_bytes().decode("utf-8")

    def read_compact_string(self) -> str:
        return self.read_compact_bytes().decode("utf-8")

    def read_byte(self) -> int:
        return self._unpack(_U8)

    def read_int(self) -> int:
        return self._unpack(_I64)

    def read_uint64(self) -> int:
        return self._unpack(_U64)

    def read_uint32(self) -> int:
        return self._unpack(_U32)

    def read_uint16(self) -> int:
        return self._unpack(_U16)

    def read_uint8(self) -> int:
        return self._unpack(_U8)

    def read_header(self) -> tuple[int, int]:
        """Read one byte and split it into (tag type, doc id length)."""
        header = self.read_uint8()
        return (header & 12) >> 2, header & 3

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "ByteReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()