"""In-memory block device."""

from __future__ import annotations

BLOCK_SIZE = 512
DISK_SIZE = 64 * 1024 * 1024


class VirtualDisk:
    """A zero-filled byte array addressed in fixed-size blocks."""

    def __init__(self, size: int = DISK_SIZE, block_size: int = BLOCK_SIZE) -> None:
        if block_size <= 0:
            raise ValueError(f"block size must be positive, got {block_size}")
        if size <= 0 or size % block_size:
            raise ValueError(
                f"disk size {size} must be a positive multiple of block size {block_size}"
            )
        self.size = size
        self.block_size = block_size
        self._data = bytearray(size)

    @property
    def block_count(self) -> int:
        return self.size // self.block_size

    def _offset(self, sector: int) -> int:
        if not 0 <= sector < self.block_count:
            raise IndexError(f"sector {sector} out of range 0..{self.block_count - 1}")
        return sector * self.block_size

    def read_block(self, sector: int) -> bytes:
        """Return the contents of one block."""
        offset = self._offset(sector)
        return bytes(self._data[offset:offset + self.block_size])

    def write_block(self, sector: int, data: bytes) -> None:
        """Write one block; shorter data is padded with zero bytes."""
        if len(data) > self.block_size:
            raise ValueError(
                f"block data is {len(data)} bytes, block size is {self.block_size}"
            )
        offset = self._offset(sector)
        self._data[offset:offset + self.block_size] = bytes(data).ljust(
            self.block_size, b"\0"
        )

    def read_blocks(self, start: int, count: int) -> bytes:
        """Return ``count`` consecutive blocks starting at ``start``."""
        if count < 0:
            raise ValueError(f"block count must not be negative, got {count}")
        return b"".join(self.read_block(sector) for sector in range(start, start + count))

    def write_blocks(self, start: int, data: bytes) -> int:
        """Write ``data`` across consecutive blocks from ``start``.

        The last block is zero-padded. Returns the number of blocks written.
        """
        chunks = [
            data[pos:pos + self.block_size]
            for pos in range(0, len(data), self.block_size)
        ]
        last = start + len(chunks) - 1
        if chunks:
            self._offset(start)
            self._offset(last)
        for sector, chunk in enumerate(chunks, start):
            self.write_block(sector, chunk)
        return len(chunks)