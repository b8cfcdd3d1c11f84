"""Fixed-size bit set used to track allocated blocks and inodes."""

from __future__ import annotations

from typing import Optional


class Bitmap:
    """A fixed number of bits, all clear to begin with.

    Bit ``i`` is stored in byte ``i // 8`` at position ``i % 8``, counting
    from the least significant bit.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"bitmap size must be positive, got {size}")
        self._size = size
        self._bits = bytearray(self.bytes_num())

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"Bitmap(size={self._size})"

    def _locate(self, index: int) -> tuple[int, int]:
        if not 0 <= index < self._size:
            raise IndexError(f"bitmap index {index} out of range 0..{self._size - 1}")
        return index // 8, 1 << (index % 8)

    def set(self, index: int) -> None:
        """Set the bit at ``index``."""
        byte, mask = self._locate(index)
        self._bits[byte] |= mask

    def clear(self, index: int) -> None:
        """Clear the bit at ``index``."""
        byte, mask = self._locate(index)
        self._bits[byte] &= ~mask & 0xFF

    def test(self, index: int) -> bool:
        """Return whether the bit at ``index`` is set."""
        byte, mask = self._locate(index)
        return bool(self._bits[byte] & mask)

    def bytes_num(self) -> int:
        """Number of bytes needed to hold all the bits."""
        return (self._size + 7) // 8

    def scan_zero(self) -> Optional[int]:
        """Return the lowest clear bit index, or ``None`` if every bit is set."""
        for byte_index, value in enumerate(self._bits):
            if value == 0xFF:
                continue
            for bit in range(8):
                if not value & (1 << bit):
                    index = byte_index * 8 + bit
                    return index if index < self._size else None
        return None

    def to_bytes(self) -> bytes:
        """Serialise the bitmap to ``bytes_num()`` bytes."""
        return bytes(self._bits)

    def load_bytes(self, data: bytes) -> None:
        """Replace the bitmap contents with the leading bytes of ``data``.

        Bits past the bitmap's size are ignored.
        """
        needed = self.bytes_num()
        if len(data) < needed:
            raise ValueError(
                f"need at least {needed} bytes to load bitmap, got {len(data)}"
            )
        self._bits = bytearray(data[:needed])
        spare = needed * 8 - self._size
        if spare:
            self._bits[-1] &= 0xFF >> spare