"""Demonstration command: format a disk, write a file, read it back."""

from __future__ import annotations

import argparse
import sys
from string import ascii_uppercase
from typing import Optional, Sequence

from blockfs.ext2 import Ext2FileSystem, FileSystemError
from blockfs.virtdisk import VirtualDisk

DEMO_BLOCKS = 4


def _print_layout(fs: Ext2FileSystem) -> None:
    print("super_block_start_idx=0")
    print(f"block_bitmap_start_idx={fs.group.block_bitmap_start_idx}")
    print(f"inode_bitmap_start_idx={fs.group.inode_bitmap_start_idx}")
    print(f"inode_table_start_idx={fs.group.inode_table_start_idx}")
    print(f"data_block_start_idx={fs.group.data_block_start_idx}")


def _read_and_show(fs: Ext2FileSystem, inode_idx: int) -> None:
    data = fs.read_file(inode_idx)
    size = fs.inode_table[inode_idx].size
    print(f"blocks_used = {-(-size // fs.super.block_size)}")
    print(f"size = {size}")
    print(f"free blocks = {fs.super.free_blocks_count}")
    print(data.split(b"\0", 1)[0].decode("ascii", errors="replace"))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="blockfs", description="Exercise the block file system on an in-memory disk."
    )
    parser.add_argument("--inode", type=int, default=68, help="inode to write (default 68)")
    args = parser.parse_args(argv)

    disk = VirtualDisk()
    length = disk.block_size * DEMO_BLOCKS
    letters = ascii_uppercase.encode("ascii")
    long_data = bytearray(letters[i % len(letters)] for i in range(length))
    long_data[-1] = 0

    try:
        fs = Ext2FileSystem(disk)
        print("create!")
        fs.format()
        _print_layout(fs)
        fs.write_file(args.inode, bytes(long_data))
        _read_and_show(fs, args.inode)
        fs.write_file(args.inode, b"AB")
        _read_and_show(fs, args.inode)
    except FileSystemError as exc:
        print(f"blockfs: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())