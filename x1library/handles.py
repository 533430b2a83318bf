"""
Folder/content handles - the minimal file-tree interface the core needs.

The UI hands the core a root handle; everything below it is reached through
list_children/find_child so that non-filesystem trees (document providers,
archives, remote shares) can be plugged in.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, List, Optional


class FolderHandle(ABC):
    """A node in a browsable file tree"""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def is_dir(self) -> bool:
        ...

    @abstractmethod
    def is_file(self) -> bool:
        ...

    @abstractmethod
    def size(self) -> int:
        ...

    @abstractmethod
    def list_children(self) -> List['FolderHandle']:
        """Immediate children. Raises OSError when the node can't be listed."""

    @abstractmethod
    def find_child(self, name: str) -> Optional['FolderHandle']:
        ...

    @abstractmethod
    def open_read(self) -> BinaryIO:
        ...

    @abstractmethod
    def open_write(self) -> BinaryIO:
        ...

    @abstractmethod
    def create_file(self, name: str) -> Optional['FolderHandle']:
        """Create an empty file under this directory, None if not permitted."""

    @abstractmethod
    def delete(self) -> bool:
        ...


class LocalFolderHandle(FolderHandle):
    """FolderHandle over the local filesystem"""

    def __init__(self, path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalFolderHandle({str(self.path)!r})"

    def __str__(self) -> str:
        return str(self.path)

    def __eq__(self, other) -> bool:
        return isinstance(other, LocalFolderHandle) and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    def is_dir(self) -> bool:
        return self.path.is_dir()

    def is_file(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def list_children(self) -> List[FolderHandle]:
        with os.scandir(self.path) as entries:
            return [LocalFolderHandle(entry.path) for entry in entries]

    def find_child(self, name: str) -> Optional[FolderHandle]:
        child = self.path / name
        if child.exists():
            return LocalFolderHandle(child)
        return None

    def open_read(self) -> BinaryIO:
        return open(self.path, 'rb')

    def open_write(self) -> BinaryIO:
        return open(self.path, 'wb')

    def create_file(self, name: str) -> Optional[FolderHandle]:
        target = self.path / name
        try:
            target.touch(exist_ok=False)
        except OSError:
            return None
        return LocalFolderHandle(target)

    def delete(self) -> bool:
        if self.path.is_dir():
            return False
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return True
        except OSError:
            return False
