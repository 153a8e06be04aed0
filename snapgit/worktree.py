"""Plain-file access to the user's working directory."""

import logging
from pathlib import Path

from .errors import FileNotFound

REPO_DIRNAME = ".snapgit"

logger = logging.getLogger(__name__)


class WorkingTree:
    """Top-level plain files of a directory, excluding the repository.

    Only regular files directly inside ``root`` are visible; the
    repository directory and any subdirectories are ignored.
    """

    def __init__(self, root: str | Path, repo_dirname: str = REPO_DIRNAME) -> None:
        self.root = Path(root)
        self.repo_dirname = repo_dirname

    @property
    def repo_dir(self) -> Path:
        return self.root / self.repo_dirname

    def path(self, filename: str) -> Path:
        return self.root / filename

    def exists(self, filename: str) -> bool:
        return self.path(filename).is_file()

    def read(self, filename: str) -> bytes:
        """Read a working file.

        Raises:
            FileNotFound: If the file is not in the working directory.
        """
        if not self.exists(filename):
            raise FileNotFound()
        return self.path(filename).read_bytes()

    def write(self, filename: str, content: bytes) -> None:
        """Create or overwrite a working file."""
        self.path(filename).write_bytes(content)

    def delete(self, filename: str) -> bool:
        """Delete a working file if present. Returns whether it existed."""
        target = self.path(filename)
        if not target.is_file():
            return False
        target.unlink()
        logger.debug("Deleted working file %s", filename)
        return True

    def files(self) -> list[str]:
        """Names of all plain files in the working directory, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_file() and entry.name != self.repo_dirname
        )
