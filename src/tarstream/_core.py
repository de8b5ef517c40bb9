"""High-level "all in one" operations: ``create`` and ``extract``.

Each is a short pipeline over the public building blocks, and serves as
the template for variations (compression, extra checks)::

    create:   write(pack(base_dir, paths), fileobj)
    extract:  unpack(dest_dir, check_tarbomb(root, read(fileobj)))
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "create",
    "extract",
)

import contextlib
import logging
import os
from collections.abc import Iterable, Iterator
from typing import BinaryIO

from tarstream._check import check_tarbomb
from tarstream._config import (
    DEFAULT_CLAMP_TIMESTAMPS,
    DEFAULT_STRICT_FORMAT,
    DEFAULT_STRIP_SPECIAL_BITS,
)
from tarstream._entries import read, write
from tarstream._pack import pack
from tarstream._unpack import unpack

log = logging.getLogger("tarstream")


@contextlib.contextmanager
def _open(file: str | os.PathLike[str] | BinaryIO, mode: str) -> Iterator[BinaryIO]:
    """Open *file* if it is a path; pass file objects through unclosed."""
    if isinstance(file, (str, os.PathLike)):
        with open(file, mode) as fileobj:
            yield fileobj  # type: ignore[misc]
    else:
        yield file


def create(
    tar_file: str | os.PathLike[str] | BinaryIO,
    base_dir: str | os.PathLike[str],
    paths: Iterable[str | os.PathLike[str]],
) -> None:
    """Create a tar archive of *paths*, taken relative to *base_dir*.

    Equivalent to ``tar -f tar_file -C base_dir -c paths...``.  The
    archive is portable: see ``pack`` for what is (not) preserved.
    """
    with _open(tar_file, "wb") as fileobj:
        write(pack(base_dir, paths), fileobj)


def extract(
    dest_dir: str | os.PathLike[str],
    tar_file: str | os.PathLike[str] | BinaryIO,
    *,
    expected_root: str | None = None,
    strict_format: bool = DEFAULT_STRICT_FORMAT,
    strip_special_bits: bool = DEFAULT_STRIP_SPECIAL_BITS,
    clamp_timestamps: bool = DEFAULT_CLAMP_TIMESTAMPS,
) -> None:
    """Extract every entry of *tar_file* under *dest_dir*.

    Equivalent to ``tar -x -f tar_file -C dest_dir``.  Entries escaping
    *dest_dir* are always rejected; with *expected_root* set, entries
    outside that top-level directory are rejected too.  Extraction is not
    atomic.
    """
    with _open(tar_file, "rb") as fileobj:
        entries = read(fileobj, strict_format=strict_format)
        if expected_root is not None:
            entries = check_tarbomb(expected_root, entries)
        log.debug("Extracting archive into %r", os.fspath(dest_dir))
        unpack(
            dest_dir,
            entries,
            strip_special_bits=strip_special_bits,
            clamp_timestamps=clamp_timestamps,
        )
