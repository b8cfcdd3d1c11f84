import pytest

from blockfs.ext2 import (
    EXT2_SUPER_MAGIC,
    DirEntry,
    Ext2FileSystem,
    FileSystemError,
    FileType,
    GroupDescriptor,
    Inode,
    SuperBlock,
)
from blockfs.virtdisk import VirtualDisk


@pytest.fixture
def disk():
    return VirtualDisk(size=1024 * 1024, block_size=512)


@pytest.fixture
def fs(disk):
    filesystem = Ext2FileSystem(disk)
    filesystem.format()
    return filesystem


def test_super_block_round_trip():
    sb = SuperBlock(EXT2_SUPER_MAGIC, 128, 100, 2048, 2000, 512)
    assert SuperBlock.unpack(sb.pack()) == sb


def test_group_descriptor_round_trip():
    group = GroupDescriptor(2, 1, 3, 1, 4, 32, 36, 2012, 0)
    assert GroupDescriptor.unpack(group.pack()) == group


def test_inode_round_trip_and_size():
    inode = Inode(type=FileType.FILE, priv=7, size=1000, ctime=3, blk_idx=list(range(13)))
    packed = inode.pack()
    assert len(packed) == 128
    assert Inode.unpack(packed) == inode


def test_dir_entry_round_trip():
    entry = DirEntry("notes.txt", 42)
    packed = entry.pack()
    assert len(packed) == len(Inode().pack())
    assert DirEntry.unpack(packed) == entry


def test_dir_entry_name_too_long():
    with pytest.raises(ValueError):
        DirEntry("x" * 120, 1).pack()


def test_format_sets_super_block(fs, disk):
    assert fs.super.magic == EXT2_SUPER_MAGIC
    assert fs.super.free_blocks_count == fs.super.blocks_count
    assert fs.super.free_inodes_count == fs.super.inodes_count
    assert fs.inode_table[0].type == FileType.DIR
    assert SuperBlock.unpack(disk.read_block(0)).magic == EXT2_SUPER_MAGIC


def test_format_layout_is_contiguous(fs):
    g = fs.group
    assert g.inode_bitmap_start_idx == g.block_bitmap_start_idx + g.block_bitmap_block_num
    assert g.inode_table_start_idx == g.inode_bitmap_start_idx + g.inode_bitmap_block_num
    assert g.data_block_start_idx == g.inode_table_start_idx + g.inode_table_block_num
    assert g.data_block_start_idx + g.data_block_num == fs.super.blocks_count


def test_format_reserves_metadata_blocks(fs):
    start = fs.group.data_block_start_idx
    assert all(fs.block_bitmap.test(i) for i in range(start))
    assert not fs.block_bitmap.test(start)


def test_write_read_round_trip(fs):
    idx = fs.group.data_block_start_idx + 1
    data = bytes(range(256)) * 7
    fs.write_file(idx, data)
    assert fs.read_file(idx) == data


def test_write_consumes_blocks(fs, disk):
    idx = fs.group.data_block_start_idx
    before = fs.super.free_blocks_count
    fs.write_file(idx, b"x" * (4 * disk.block_size))
    assert fs.super.free_blocks_count == before - 4


def test_shrinking_write_frees_blocks(fs, disk):
    idx = fs.group.data_block_start_idx
    before = fs.super.free_blocks_count
    fs.write_file(idx, b"y" * (4 * disk.block_size))
    fs.write_file(idx, b"AB")
    assert fs.read_file(idx) == b"AB"
    assert fs.super.free_blocks_count == before - 1


def test_write_increments_ctime(fs):
    idx = fs.group.data_block_start_idx
    fs.write_file(idx, b"one")
    fs.write_file(idx, b"two")
    assert fs.inode_table[idx].ctime == 2


def test_write_too_large_raises(fs, disk):
    with pytest.raises(FileSystemError):
        fs.write_file(fs.group.data_block_start_idx, b"z" * (14 * disk.block_size))


def test_write_to_metadata_inode_raises(fs):
    with pytest.raises(FileSystemError):
        fs.write_file(fs.group.data_block_start_idx - 1, b"data")


def test_read_empty_file(fs):
    assert fs.read_file(fs.group.data_block_start_idx) == b""


def test_alloc_and_free_block(fs):
    before = fs.super.free_blocks_count
    block = fs.alloc_block()
    assert block == fs.group.data_block_start_idx
    assert fs.block_bitmap.test(block)
    fs.free_block(block)
    assert not fs.block_bitmap.test(block)
    assert fs.super.free_blocks_count == before


def test_alloc_exhausts_disk():
    tiny = VirtualDisk(size=64 * 512, block_size=512)
    filesystem = Ext2FileSystem(tiny)
    filesystem.format()
    allocated = []
    with pytest.raises(FileSystemError):
        while True:
            allocated.append(filesystem.alloc_block())
    assert len(allocated) == filesystem.group.data_block_num
    assert len(set(allocated)) == len(allocated)


def test_free_block_out_of_range(fs):
    with pytest.raises(FileSystemError):
        fs.free_block(fs.super.blocks_count)


def test_load_restores_state(fs, disk):
    idx = fs.group.data_block_start_idx + 5
    fs.write_file(idx, b"persisted contents")
    loaded = Ext2FileSystem(disk)
    loaded.load()
    assert loaded.group == fs.group
    assert loaded.read_file(idx) == b"persisted contents"
    assert loaded.inode_table[0].type == FileType.DIR


def test_load_unformatted_disk_raises(disk):
    with pytest.raises(FileSystemError):
        Ext2FileSystem(disk).load()


def _make_dir(fs, names):
    idx = fs.group.data_block_start_idx + 2
    fs.inode_table[idx].type = FileType.DIR
    payload = b"".join(DirEntry(name, target).pack() for name, target in names)
    fs.write_file(idx, payload)
    return idx


def test_find_entry_found(fs):
    names = [(f"file{n}", 80 + n) for n in range(6)]
    idx = _make_dir(fs, names)
    assert fs.find_entry(idx, "file0") == 80
    assert fs.find_entry(idx, "file5") == 85


def test_find_entry_missing(fs):
    idx = _make_dir(fs, [("a", 90)])
    assert fs.find_entry(idx, "b") is None


def test_find_entry_in_empty_root(fs):
    assert fs.find_entry(0, "anything") is None


def test_find_entry_not_a_directory(fs):
    idx = fs.group.data_block_start_idx
    fs.write_file(idx, b"plain")
    with pytest.raises(FileSystemError):
        fs.find_entry(idx, "plain")


def test_find_entry_out_of_range(fs):
    with pytest.raises(FileSystemError):
        fs.find_entry(len(fs.inode_table), "x")