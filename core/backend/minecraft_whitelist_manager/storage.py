"""
File Access

Minimal file capability used by the whitelist and user cache. Handles are
looked up by path relative to the server root so the same code works
against a local directory or a remote panel.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class FileHandle:
    """A single file inside the server root"""

    def exists(self) -> bool:
        raise NotImplementedError

    def read_text(self) -> str:
        raise NotImplementedError

    def write_text(self, content: str) -> None:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError


class FileService:
    """Resolves paths to file handles"""

    def get_file(self, path: str) -> Optional[FileHandle]:
        """
        Get a handle for a file in the server root

        Args:
            path: Path relative to the server root

        Returns:
            File handle, or None if the server root is not reachable
        """
        raise NotImplementedError


class LocalFile(FileHandle):
    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def write_text(self, content: str) -> None:
        # Readers see either the old or the new contents
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(self.path)

    def delete(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def __repr__(self):
        return f"LocalFile({self.path})"


class LocalFileService(FileService):
    """File access for a server directory on the local disk"""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    def get_file(self, path: str) -> Optional[FileHandle]:
        if not self.root.is_dir():
            logger.warning(f"Server directory not found: {self.root}")
            return None
        return LocalFile(self.root / path)
