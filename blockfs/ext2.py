"""A minimal ext2-style file system laid out on a :class:`VirtualDisk`."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from itertools import islice
from typing import ClassVar, Iterator, Optional

from blockfs.bitmap import Bitmap
from blockfs.virtdisk import VirtualDisk

EXT2_SUPER_MAGIC = 0xEF53
SUPER_BLOCK_IDX = 0
GROUP_DESCRIPTOR_IDX = 1
ROOT_INODE_IDX = 0
INODES_COUNT = 128
MAX_BLK_IDX = 13
MAX_FILENAME_LEN = 120


class FileSystemError(Exception):
    """Raised when a file system operation cannot be carried out."""


class FileType(IntEnum):
    DIR = 1
    FILE = 2


def _blocks_for(size: int, block_size: int) -> int:
    return -(-size // block_size)


def _unpack(fmt: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < fmt.size:
        raise ValueError(f"{what} needs {fmt.size} bytes, got {len(data)}")
    return fmt.unpack_from(data)


@dataclass
class SuperBlock:
    """File system wide counters and geometry."""

    magic: int = EXT2_SUPER_MAGIC
    inodes_count: int = 0
    free_inodes_count: int = 0
    blocks_count: int = 0
    free_blocks_count: int = 0
    block_size: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<6Q")

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.magic,
            self.inodes_count,
            self.free_inodes_count,
            self.blocks_count,
            self.free_blocks_count,
            self.block_size,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SuperBlock":
        return cls(*_unpack(cls._FORMAT, data, "super block"))


@dataclass
class GroupDescriptor:
    """Where each on-disk region starts and how many blocks it spans."""

    block_bitmap_start_idx: int = 0
    block_bitmap_block_num: int = 0
    inode_bitmap_start_idx: int = 0
    inode_bitmap_block_num: int = 0
    inode_table_start_idx: int = 0
    inode_table_block_num: int = 0
    data_block_start_idx: int = 0
    data_block_num: int = 0
    root_inode_idx: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<9Q")

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.block_bitmap_start_idx,
            self.block_bitmap_block_num,
            self.inode_bitmap_start_idx,
            self.inode_bitmap_block_num,
            self.inode_table_start_idx,
            self.inode_table_block_num,
            self.data_block_start_idx,
            self.data_block_num,
            self.root_inode_idx,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "GroupDescriptor":
        return cls(*_unpack(cls._FORMAT, data, "group descriptor"))


@dataclass
class Inode:
    """One file or directory: type, size and the blocks holding its data."""

    type: int = 0
    priv: int = 0
    size: int = 0
    ctime: int = 0
    blk_idx: list[int] = field(default_factory=lambda: [0] * MAX_BLK_IDX)

    _FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<IIQQ{MAX_BLK_IDX}Q")

    def pack(self) -> bytes:
        if len(self.blk_idx) != MAX_BLK_IDX:
            raise ValueError(f"inode needs exactly {MAX_BLK_IDX} block slots")
        return self._FORMAT.pack(self.type, self.priv, self.size, self.ctime, *self.blk_idx)

    @classmethod
    def unpack(cls, data: bytes) -> "Inode":
        type_, priv, size, ctime, *blocks = _unpack(cls._FORMAT, data, "inode")
        return cls(type_, priv, size, ctime, list(blocks))


@dataclass
class DirEntry:
    """A name inside a directory and the inode it refers to."""

    name: str
    inode_idx: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<{MAX_FILENAME_LEN}sQ")

    def pack(self) -> bytes:
        encoded = self.name.encode("utf-8")
        if b"\0" in encoded:
            raise ValueError("file name must not contain NUL")
        if len(encoded) >= MAX_FILENAME_LEN:
            raise ValueError(
                f"file name is {len(encoded)} bytes, limit is {MAX_FILENAME_LEN - 1}"
            )
        return self._FORMAT.pack(encoded, self.inode_idx)

    @classmethod
    def unpack(cls, data: bytes) -> "DirEntry":
        raw, inode_idx = _unpack(cls._FORMAT, data, "directory entry")
        name = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(name, inode_idx)


INODE_SIZE = Inode._FORMAT.size
DIR_ENTRY_SIZE = DirEntry._FORMAT.size


class Ext2FileSystem:
    """Super block, group descriptor, bitmaps and inode table over a disk."""

    def __init__(self, disk: VirtualDisk) -> None:
        self.disk = disk
        self.super = SuperBlock(
            magic=EXT2_SUPER_MAGIC,
            inodes_count=INODES_COUNT,
            block_size=disk.block_size,
            blocks_count=disk.size // disk.block_size,
        )
        self.group = GroupDescriptor()
        self.block_bitmap = Bitmap(self.super.blocks_count)
        self.inode_bitmap = Bitmap(self.super.inodes_count)
        self.inode_table = [Inode() for _ in range(self.super.inodes_count)]

    def format(self) -> None:
        """Lay out the metadata regions and write them to the disk."""
        sb = self.super
        bs = sb.block_size
        sb.magic = EXT2_SUPER_MAGIC
        sb.free_blocks_count = sb.blocks_count
        sb.free_inodes_count = sb.inodes_count

        self.block_bitmap = Bitmap(sb.blocks_count)
        self.inode_bitmap = Bitmap(sb.inodes_count)
        self.inode_table = [Inode() for _ in range(sb.inodes_count)]
        self.inode_table[ROOT_INODE_IDX].type = FileType.DIR

        pos = GROUP_DESCRIPTOR_IDX + 1
        block_bitmap_num = _blocks_for(self.block_bitmap.bytes_num(), bs)
        inode_bitmap_start = pos + block_bitmap_num
        inode_bitmap_num = _blocks_for(self.inode_bitmap.bytes_num(), bs)
        inode_table_start = inode_bitmap_start + inode_bitmap_num
        inode_table_num = _blocks_for(INODE_SIZE * sb.inodes_count, bs)
        data_start = inode_table_start + inode_table_num
        if data_start >= sb.blocks_count:
            raise FileSystemError("disk is too small to hold the file system metadata")

        self.group = GroupDescriptor(
            block_bitmap_start_idx=pos,
            block_bitmap_block_num=block_bitmap_num,
            inode_bitmap_start_idx=inode_bitmap_start,
            inode_bitmap_block_num=inode_bitmap_num,
            inode_table_start_idx=inode_table_start,
            inode_table_block_num=inode_table_num,
            data_block_start_idx=data_start,
            data_block_num=sb.blocks_count - data_start,
            root_inode_idx=ROOT_INODE_IDX,
        )

        for block in range(SUPER_BLOCK_IDX, data_start):
            self.block_bitmap.set(block)

        self.disk.write_block(SUPER_BLOCK_IDX, sb.pack())
        self.disk.write_block(GROUP_DESCRIPTOR_IDX, self.group.pack())
        self.disk.write_blocks(self.group.block_bitmap_start_idx, self.block_bitmap.to_bytes())
        self.disk.write_blocks(self.group.inode_bitmap_start_idx, self.inode_bitmap.to_bytes())
        self._flush_inode_table()

    def load(self) -> None:
        """Read the metadata of a formatted disk into memory."""
        try:
            sb = SuperBlock.unpack(self.disk.read_block(SUPER_BLOCK_IDX))
            if sb.magic != EXT2_SUPER_MAGIC:
                raise FileSystemError(f"bad super block magic {sb.magic:#x}")
            if sb.block_size != self.disk.block_size:
                raise FileSystemError(
                    f"block size {sb.block_size} does not match disk block size "
                    f"{self.disk.block_size}"
                )
            group = GroupDescriptor.unpack(self.disk.read_block(GROUP_DESCRIPTOR_IDX))
            block_bitmap = Bitmap(sb.blocks_count)
            block_bitmap.load_bytes(
                self.disk.read_blocks(group.block_bitmap_start_idx, group.block_bitmap_block_num)
            )
            inode_bitmap = Bitmap(sb.inodes_count)
            inode_bitmap.load_bytes(
                self.disk.read_blocks(group.inode_bitmap_start_idx, group.inode_bitmap_block_num)
            )
            table = self.disk.read_blocks(
                group.inode_table_start_idx, group.inode_table_block_num
            )
            inodes = [
                Inode.unpack(table[offset:offset + INODE_SIZE])
                for offset in range(0, INODE_SIZE * sb.inodes_count, INODE_SIZE)
            ]
        except (ValueError, IndexError) as exc:
            raise FileSystemError(f"cannot load file system: {exc}") from exc

        self.super = sb
        self.group = group
        self.block_bitmap = block_bitmap
        self.inode_bitmap = inode_bitmap
        self.inode_table = inodes

    def alloc_block(self) -> int:
        """Mark the lowest free block as used and return its index."""
        index = self.block_bitmap.scan_zero()
        if index is None:
            raise FileSystemError("no free blocks left")
        self.block_bitmap.set(index)
        self.super.free_blocks_count -= 1
        return index

    def free_block(self, idx: int) -> None:
        """Return block ``idx`` to the free pool."""
        try:
            self.block_bitmap.clear(idx)
        except IndexError as exc:
            raise FileSystemError(str(exc)) from exc
        self.super.free_blocks_count += 1

    def _check_file_inode(self, inode_idx: int) -> Inode:
        if not (
            self.group.data_block_start_idx <= inode_idx < self.super.blocks_count
            and inode_idx < len(self.inode_table)
        ):
            raise FileSystemError(f"inode index {inode_idx} is not usable for file data")
        return self.inode_table[inode_idx]

    def write_file(self, inode_idx: int, data: bytes) -> None:
        """Replace the contents of inode ``inode_idx`` with ``data``."""
        inode = self._check_file_inode(inode_idx)
        data = bytes(data)
        bs = self.super.block_size
        needed = _blocks_for(len(data), bs)
        if needed > MAX_BLK_IDX or needed > self.super.free_blocks_count:
            raise FileSystemError(
                f"{len(data)} bytes need {needed} blocks; at most {MAX_BLK_IDX} per file "
                f"and {self.super.free_blocks_count} free"
            )
        used = _blocks_for(inode.size, bs)

        for block in inode.blk_idx[needed:used]:
            self.free_block(block)
        for slot in range(used, needed):
            inode.blk_idx[slot] = self.alloc_block()

        chunks = (data[pos:pos + bs] for pos in range(0, len(data), bs))
        for block, chunk in zip(inode.blk_idx[:needed], chunks):
            self.disk.write_block(block, chunk)

        inode.size = len(data)
        inode.ctime += 1
        self._flush_inode_table()

    def read_file(self, inode_idx: int) -> bytes:
        """Return the contents of inode ``inode_idx``."""
        inode = self._check_file_inode(inode_idx)
        used = _blocks_for(inode.size, self.super.block_size)
        content = b"".join(self.disk.read_block(block) for block in inode.blk_idx[:used])
        return content[:inode.size]

    def _dir_entries(self, inode: Inode) -> Iterator[DirEntry]:
        bs = self.super.block_size
        per_block = bs // DIR_ENTRY_SIZE
        for block in inode.blk_idx[:_blocks_for(inode.size, bs)]:
            raw = self.disk.read_block(block)
            for offset in range(0, per_block * DIR_ENTRY_SIZE, DIR_ENTRY_SIZE):
                yield DirEntry.unpack(raw[offset:offset + DIR_ENTRY_SIZE])

    def find_entry(self, inode_idx: int, name: str) -> Optional[int]:
        """Look ``name`` up in directory ``inode_idx``; ``None`` if absent."""
        if not 0 <= inode_idx < len(self.inode_table):
            raise FileSystemError(f"inode index {inode_idx} out of range")
        inode = self.inode_table[inode_idx]
        if inode.type != FileType.DIR:
            raise FileSystemError(f"inode {inode_idx} is not a directory")
        total = inode.size // DIR_ENTRY_SIZE
        for entry in islice(self._dir_entries(inode), total):
            if entry.name == name:
                return entry.inode_idx
        return None

    def _flush_inode_table(self) -> None:
        table = b"".join(inode.pack() for inode in self.inode_table)
        self.disk.write_blocks(self.group.inode_table_start_idx, table)