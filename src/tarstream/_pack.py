"""Pack: build an entry sequence from files on disk.

Archives built here are meant to be portable, not backups: ownership is
never recorded and permissions are reduced to ``rw-r--r--`` for ordinary
files and ``rwxr-xr-x`` for executables and directories.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "get_directory_contents_recursive",
    "pack",
    "pack_directory_entry",
    "pack_file_entry",
)

import logging
import os
import stat
from collections.abc import Iterable, Iterator
from pathlib import Path

from tarstream._entries import Entries, unfold_entries
from tarstream._tarpath import TarPath, to_tar_path
from tarstream._types import (
    EXECUTABLE_FILE_MODE,
    ORDINARY_FILE_MODE,
    Entry,
    LazyBody,
    directory_entry,
    file_entry,
)

log = logging.getLogger("tarstream.pack")


class _FileBody(LazyBody):
    """The first *size* bytes of a file, read when the entry is written.

    The file is reopened for each chunk, so no descriptor stays open
    while the entry waits in the sequence.  It can be read through once.
    """

    __slots__ = ("_path", "_offset")

    def __init__(self, path: Path, size: int) -> None:
        super().__init__(size)
        self._path = path
        self._offset = 0

    def read(self, n: int = -1) -> bytes:
        left = self.size - self._offset
        if n < 0 or n > left:
            n = left
        if n == 0:
            return b""
        with open(self._path, "rb") as src:
            src.seek(self._offset)
            data = src.read(n)
        if len(data) < n:
            raise OSError(
                f"File {str(self._path)!r} shrank while being packed "
                f"({self._offset + len(data)} of {self.size} bytes)"
            )
        self._offset += n
        return data

    def __repr__(self) -> str:
        return f"<contents of {str(self._path)!r}, {self.size} bytes>"


def pack_file_entry(file_path: str | os.PathLike[str], tar_path: TarPath) -> Entry:
    """Make a file entry for *file_path*.

    The size is taken now; the contents are read in chunks when the entry
    is written.
    """
    st = os.stat(file_path)
    body = _FileBody(Path(file_path), st.st_size) if st.st_size else b""
    mode = EXECUTABLE_FILE_MODE if st.st_mode & stat.S_IXUSR else ORDINARY_FILE_MODE
    return file_entry(tar_path, body).replace(
        permissions=mode,
        modification_time=int(st.st_mtime),
    )


def pack_directory_entry(
    dir_path: str | os.PathLike[str], tar_path: TarPath
) -> Entry:
    st = os.stat(dir_path)
    return directory_entry(tar_path).replace(modification_time=int(st.st_mtime))


def _walk(root: Path, rel: str) -> Iterator[tuple[str, bool]]:
    with os.scandir(root / rel if rel else root) as it:
        children = sorted(it, key=lambda e: e.name)

    for child in children:
        child_rel = os.path.join(rel, child.name) if rel else child.name
        if child.is_symlink():
            log.debug("Skipping symbolic link %r", child_rel)
        elif child.is_dir():
            yield child_rel, True
            yield from _walk(root, child_rel)
        elif child.is_file():
            yield child_rel, False
        else:
            log.debug("Skipping special file %r", child_rel)


def get_directory_contents_recursive(
    dir_path: str | os.PathLike[str],
) -> Iterator[str]:
    """Yield every file and directory below *dir_path*, relative to it.

    Depth first, in sorted order, each directory before its contents.
    Symbolic links and special files are skipped.
    """
    for rel, _is_dir in _walk(Path(dir_path), ""):
        yield rel


def pack(
    base_dir: str | os.PathLike[str],
    paths: Iterable[str | os.PathLike[str]],
) -> Entries:
    """Lazily pack *paths* (relative to *base_dir*) and everything below them.

    Files are stat'ed one at a time as the sequence is consumed and
    their contents read only when the entries are written.  A missing
    file or an unrepresentable path ends the sequence with a
    ``Fail`` node.
    """
    base = Path(base_dir)

    def walk() -> Iterator[tuple[str, bool]]:
        for path in paths:
            rel = os.fspath(path)
            full = base / rel
            if full.is_dir() and not full.is_symlink():
                yield rel, True
                for sub, is_dir in _walk(full, ""):
                    yield os.path.join(rel, sub), is_dir
            else:
                yield rel, False

    def step(it: Iterator[tuple[str, bool]]) -> tuple[Entry, Iterator] | None:
        item = next(it, None)
        if item is None:
            return None
        rel, is_dir = item
        if is_dir:
            entry = pack_directory_entry(base / rel, to_tar_path(True, rel))
        else:
            entry = pack_file_entry(base / rel, to_tar_path(False, rel))
        return entry, it

    return unfold_entries(step, walk())
