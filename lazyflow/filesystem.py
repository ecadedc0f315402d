"""Directory listings as flow sources.

Values are ``pathlib.Path`` objects and keys are their path strings.
Listings are sorted by name so that iteration order is stable.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

from .cursor import Cursor
from .flow import Flow
from .utils import InvalidArgumentError, PreconditionError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _require_directory(path: PathLike) -> Path:
    path = Path(path)
    if not path.is_dir():
        raise InvalidArgumentError(f"Not a readable directory: {path}")
    return path


class DirectoryCursor(Cursor):
    """Lists the entries of one directory."""

    def __init__(self, path: PathLike, pattern: Optional[str] = None):
        self._path = Path(path)
        self._pattern = pattern
        self._entries: Optional[Iterator[Path]] = None
        self._entry: Optional[Path] = None

    def _listing(self):
        try:
            if self._pattern is None:
                return sorted(self._path.iterdir())
            return sorted(self._path.glob(self._pattern))
        except OSError as e:
            raise InvalidArgumentError(f"Cannot list {self._path}: {e}") from e

    def valid(self):
        return self._entry is not None

    def current(self):
        return self._entry

    def key(self):
        return str(self._entry) if self._entry is not None else None

    def advance(self):
        if self._entry is not None:
            self._entry = next(self._entries, None)

    def reset(self):
        self._entries = iter(self._listing())
        self._entry = next(self._entries, None)


def _require_path(value, operation: str) -> Path:
    if not isinstance(value, Path):
        raise PreconditionError(
            f"{operation}() needs a stream of pathlib.Path values, got {type(value).__name__}"
        )
    return value


class FilesystemFlow(Flow):
    """A Flow over filesystem entries."""

    @classmethod
    def from_path(cls, path: PathLike) -> "FilesystemFlow":
        """The entries of a directory."""
        return cls(DirectoryCursor(_require_directory(path)))

    @classmethod
    def glob(cls, pattern: PathLike) -> "FilesystemFlow":
        """Entries matching a glob pattern such as ``/tmp/logs/*.txt``."""
        pattern = Path(pattern)
        return cls(DirectoryCursor(_require_directory(pattern.parent), pattern.name))

    @classmethod
    def recursive_from(cls, path: PathLike) -> "FilesystemFlow":
        """The entries of a directory and of all its subdirectories, parents first."""
        root = _require_directory(path)
        logger.debug(f"Walking {root} recursively")
        return cls(DirectoryCursor(root)).recursive_unfold(
            lambda entry: DirectoryCursor(entry) if entry.is_dir() else entry,
            keep_originals=True,
        )

    @classmethod
    def recursive_glob(cls, root: PathLike, pattern: str) -> "FilesystemFlow":
        """Entries matching ``pattern`` in ``root`` and in all its subdirectories."""
        root = _require_directory(root)
        return (
            cls.recursive_from(root)
            .only_directories()
            .prepend_value(root, str(root))
            .expand(lambda directory: DirectoryCursor(directory, pattern))
        )

    def only_directories(self) -> "FilesystemFlow":
        return self.where(lambda entry: _require_path(entry, "only_directories").is_dir())

    def only_files(self) -> "FilesystemFlow":
        return self.where(lambda entry: _require_path(entry, "only_files").is_file())
