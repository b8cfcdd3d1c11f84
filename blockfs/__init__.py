"""An ext2-style file system on an in-memory block disk, with a demo command."""

__version__ = "0.1.0"
__all__ = ["bitmap", "virtdisk", "ext2", "cli"]