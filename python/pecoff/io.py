"""
Random-access little-endian reader and writer over in-memory buffers.

DataReader is the cursor every decoder consumes: fixed-width reads advance
the position, seeks are absolute and bounds-checked. DataWriter mirrors it
for the assembler and zero-fills any gap created by seeking past the end.
"""

import struct

from .errors import OutOfBoundsOffset, TruncatedInput


class DataReader:
    """Cursor over an immutable byte buffer.

    Usage:
        reader = DataReader(data)
        magic = reader.read_word()
        reader.seek(0x3C)
        pe_offset = reader.read_doubleword()
    """

    def __init__(self, data: bytes | bytearray | memoryview, offset: int = 0):
        self._data = bytes(data)
        self._pos = 0
        self.seek(offset)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytes:
        """The underlying buffer."""
        return self._data

    @property
    def position(self) -> int:
        """Current absolute offset."""
        return self._pos

    @property
    def remaining(self) -> int:
        """Number of bytes between the cursor and the end of the buffer."""
        return len(self._data) - self._pos

    def seek(self, pos: int) -> None:
        """Move the cursor to an absolute offset.

        Seeking to exactly the end of the buffer is allowed; any read from
        there raises TruncatedInput.
        """
        if pos < 0 or pos > len(self._data):
            raise OutOfBoundsOffset(
                f"Offset 0x{pos:x} outside buffer of {len(self._data)} bytes"
            )
        self._pos = pos

    def skip(self, count: int) -> None:
        """Advance the cursor by count bytes."""
        self.seek(self._pos + count)

    def _require(self, size: int) -> None:
        if size < 0 or self._pos + size > len(self._data):
            raise TruncatedInput(
                f"Need {size} bytes at offset 0x{self._pos:x}, "
                f"only {self.remaining} available"
            )

    def unpack(self, fmt: str) -> tuple:
        """Unpack a struct format at the cursor and advance past it."""
        size = struct.calcsize(fmt)
        self._require(size)
        values = struct.unpack_from(fmt, self._data, self._pos)
        self._pos += size
        return values

    def read_byte(self) -> int:
        return self.unpack("<B")[0]

    def read_word(self) -> int:
        return self.unpack("<H")[0]

    def read_doubleword(self) -> int:
        return self.unpack("<I")[0]

    def read_long(self) -> int:
        return self.unpack("<Q")[0]

    def read_fixed_string(self, count: int) -> bytes:
        """Read exactly count raw bytes."""
        self._require(count)
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def read_null_terminated_string(self, encoding: str = "ascii") -> str:
        """Read bytes up to a NUL terminator and consume the terminator."""
        end = self._data.find(b"\x00", self._pos)
        if end < 0:
            raise TruncatedInput(
                f"Unterminated string at offset 0x{self._pos:x}"
            )
        raw = self._data[self._pos : end]
        self._pos = end + 1
        return raw.decode(encoding, errors="replace")


class DataWriter:
    """Growable little-endian writer used by the assembler."""

    def __init__(self):
        self._buf = bytearray()
        self._pos = 0

    def __len__(self) -> int:
        return len(self._buf)

    @property
    def position(self) -> int:
        """Current absolute offset."""
        return self._pos

    def seek(self, pos: int) -> None:
        """Move to an absolute offset, zero-filling past the current end."""
        if pos < 0:
            raise OutOfBoundsOffset(f"Cannot seek to negative offset {pos}")
        if pos > len(self._buf):
            self._buf.extend(b"\x00" * (pos - len(self._buf)))
        self._pos = pos

    def write_bytes(self, data: bytes | bytearray) -> None:
        """Write raw bytes at the cursor, overwriting anything already there."""
        end = self._pos + len(data)
        if end > len(self._buf):
            self._buf.extend(b"\x00" * (end - len(self._buf)))
        self._buf[self._pos : end] = data
        self._pos = end

    def pack(self, fmt: str, *values) -> None:
        """Pack values with a struct format at the cursor."""
        self.write_bytes(struct.pack(fmt, *values))

    def write_byte(self, value: int) -> None:
        self.pack("<B", value)

    def write_word(self, value: int) -> None:
        self.pack("<H", value)

    def write_doubleword(self, value: int) -> None:
        self.pack("<I", value)

    def write_long(self, value: int) -> None:
        self.pack("<Q", value)

    def getvalue(self) -> bytes:
        """Return everything written so far."""
        return bytes(self._buf)
