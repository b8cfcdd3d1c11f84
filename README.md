# blockfs

A small ext2-style file system on a virtual block disk held in memory. The
disk is divided into 512-byte blocks. It holds a super block, a group
descriptor, a block bitmap, an inode bitmap, an inode table and the data
blocks.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `blockfs.bitmap.Bitmap`: a fixed-size bit set. `set`, `clear` and `test`
  work on single bits and raise `IndexError` for an index out of range.
  `scan_zero()` returns the lowest clear bit, or `None` if every bit is set.
  `bytes_num()` gives the number of bytes the bits need. `to_bytes()` and
  `load_bytes()` convert the set to bytes and back. `len()` gives the number
  of bits.
- `blockfs.virtdisk.VirtualDisk`: a zero-filled in-memory disk. By default it
  holds 64 MiB in 512-byte blocks. You address it by block number with
  `read_block`, `write_block`, `read_blocks` and `write_blocks`. Short writes
  are padded with zero bytes.
- `blockfs.ext2`: the file system. It contains `Ext2FileSystem`, the on-disk
  records `SuperBlock`, `GroupDescriptor`, `Inode` and `DirEntry` (each with
  `pack()` and `unpack()`), the `FileType` enum and `FileSystemError`.
- `blockfs.cli`: the demonstration command.

## Usage

```python
from blockfs.virtdisk import VirtualDisk
from blockfs.ext2 import Ext2FileSystem

disk = VirtualDisk(64 * 1024 * 1024, 512)
fs = Ext2FileSystem(disk)
fs.format()

fs.write_file(68, b"hello, blocks")
print(fs.read_file(68))   # b'hello, blocks'
```

### Formatting and loading

`format()` lays out the metadata regions, marks their blocks as used, makes
inode 0 the root directory and writes everything to the disk. `load()` reads
that layout back from the disk. It raises `FileSystemError` when the magic
number, the block size or the layout does not match.

### Layout on the default disk

On the default 64 MiB disk the regions start at these blocks:

| Region       | Start block |
| ------------ | ----------- |
| super block  | 0           |
| block bitmap | 2           |
| inode bitmap | 34          |
| inode table  | 35          |
| data blocks  | 67          |

### Reading and writing files

`write_file(inode_idx, data)` replaces a file's contents. It allocates or
frees data blocks as the file grows or shrinks. A file can span at most
13 blocks. `read_file(inode_idx)` returns exactly `size` bytes.

Both methods accept only inode indexes from the first data block index
(`fs.group.data_block_start_idx`) up to the end of the 128-entry inode table.
Any other index raises `FileSystemError`.

### Blocks and directories

`alloc_block()` takes the lowest free block from the block bitmap, and
`free_block(idx)` returns a block to it. Both keep `fs.super.free_blocks_count`
up to date.

`find_entry(dir_inode_idx, name)` looks a name up in a directory inode. It
returns the entry's inode index, or `None` if the name is not there.

## Demo

```
blockfs-demo
```

The demo formats a fresh disk and prints where each region starts. It writes a
repeating alphabet pattern spread over four blocks and reads it back. It then
overwrites the file with `AB` and reads it again. After each read it prints
the blocks used, the size and the free block count. `--inode N` chooses the
inode to write; the default is 68.

## What it does not do

- Everything lives in memory. Nothing is saved to or read from a file on your
  computer.
- There are no paths. You cannot create files or directories by name, and
  nothing adds directory entries. `find_entry` only reads entries that are
  already in a directory's blocks.
- The inode bitmap is written and loaded, but inodes are never allocated from
  it.