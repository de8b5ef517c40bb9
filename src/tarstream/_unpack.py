"""Unpack: materialise an entry sequence under a directory.

The sequence always goes through ``check_security`` first, so nothing is
written for an entry that would escape the target.  Unpacking is not
atomic: entries written before a failure stay on disk.  Extract into a
fresh directory and remove it on failure if that matters.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = ("unpack",)

import contextlib
import logging
import os
import random
import shutil
from pathlib import Path

from tarstream._check import check_security
from tarstream._config import DEFAULT_CLAMP_TIMESTAMPS, DEFAULT_STRIP_SPECIAL_BITS
from tarstream._entries import Entries, fold_entries
from tarstream._exceptions import MalformedArchiveError
from tarstream._sandbox import (
    resolve_link_source,
    resolve_member_path,
    sanitise_mode,
    sanitise_mtime,
)
from tarstream._types import (
    BlockDevice,
    Body,
    CharacterDevice,
    Directory,
    Entry,
    HardLink,
    NamedPipe,
    NormalFile,
    OtherEntryType,
    SymbolicLink,
    iter_body,
)

log = logging.getLogger("tarstream.unpack")


class _Unpacker:
    """Accumulator threaded through ``fold_entries``."""

    def __init__(
        self,
        base_dir: Path,
        *,
        strip_special_bits: bool,
        clamp_timestamps: bool,
    ) -> None:
        self._base_dir = base_dir
        self._strip_special_bits = strip_special_bits
        self._clamp_timestamps = clamp_timestamps
        self._deferred_links: list[tuple[Entry, Path]] = []
        self._deferred_dirs: list[tuple[Entry, Path]] = []
        self._extracted_files: set[Path] = set()

    def add(self, entry: Entry) -> _Unpacker:
        dest_path = resolve_member_path(self._base_dir, entry.path.value)

        match entry.content:
            case NormalFile(body=body):
                _write_file(dest_path, body)
                self._apply_metadata(entry, dest_path)
                self._extracted_files.add(dest_path)
            case Directory():
                dest_path.mkdir(parents=True, exist_ok=True)
                # Defer directory metadata until after all files are
                # extracted, so restrictive permissions don't block
                # extraction of files inside the directory.
                self._deferred_dirs.append((entry, dest_path))
            case HardLink() | SymbolicLink():
                # Links are emulated by copying once every target exists.
                self._deferred_links.append((entry, dest_path))
            case CharacterDevice() | BlockDevice() | NamedPipe() | OtherEntryType():
                log.debug(
                    "Skipping %s entry %r",
                    type(entry.content).__name__,
                    entry.path.value,
                )
        return self

    def finish(self) -> None:
        for entry, dest_path in self._deferred_links:
            self._copy_link(entry, dest_path)

        for entry, dest_path in self._deferred_dirs:
            self._apply_metadata(entry, dest_path)

    def _copy_link(self, entry: Entry, dest_path: Path) -> None:
        match entry.content:
            case HardLink(target=target):
                symbolic = False
            case SymbolicLink(target=target):
                symbolic = True
            case _:
                return

        source = resolve_link_source(
            self._base_dir, entry.path.value, target, symbolic=symbolic
        )
        if source.is_dir():
            log.debug("Skipping link %r to directory %r", entry.path.value, target)
            return
        if source not in self._extracted_files:
            raise MalformedArchiveError(
                f"Link {entry.path.value!r} points at {target!r}, which is "
                "not a file in the archive"
            )

        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest_path)
        shutil.copymode(source, dest_path)
        self._extracted_files.add(dest_path)

    def _apply_metadata(self, entry: Entry, dest_path: Path) -> None:
        """Apply sanitised permissions and timestamps.

        Ownership is never applied; files belong to the current process.
        """
        safe_mode = sanitise_mode(
            entry.permissions,
            strip_special_bits=self._strip_special_bits,
        )
        with contextlib.suppress(OSError):
            os.chmod(dest_path, safe_mode)

        mtime = sanitise_mtime(
            entry.modification_time, clamp_timestamps=self._clamp_timestamps
        )
        with contextlib.suppress(OSError):
            os.utime(dest_path, (mtime, mtime))


def _write_file(dest_path: Path, body: Body) -> None:
    """Write *body* to *dest_path* through a temporary file and a rename.

    The body is copied chunk by chunk.  The temporary file sits next to
    *dest_path*, so *dest_path* must not be an existing directory.
    """
    if dest_path.is_dir():
        raise MalformedArchiveError(
            f"Cannot write a file over the directory {str(dest_path)!r}"
        )

    suffix = f".tarstream_tmp_{os.getpid()}_{random.randint(0, 999999):06d}"
    temp_path = dest_path.with_name(dest_path.name + suffix)

    try:
        temp_path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "wb") as out:
            for chunk in iter_body(body):
                out.write(chunk)
        temp_path.replace(dest_path)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def _raise(_unpacker: _Unpacker, error: Exception) -> None:
    raise error


def unpack(
    base_dir: str | os.PathLike[str],
    entries: Entries,
    *,
    strip_special_bits: bool = DEFAULT_STRIP_SPECIAL_BITS,
    clamp_timestamps: bool = DEFAULT_CLAMP_TIMESTAMPS,
) -> None:
    """Write *entries* under *base_dir*, creating it if needed.

    :param strip_special_bits: Strip setuid/setgid/sticky bits.
    :param clamp_timestamps: Clamp mtime to ``[0, 2**32 - 1]``.
    :raises PathEscapeError: If an entry escapes *base_dir*.
    :raises TarstreamError: Whatever error ends *entries*.
    """
    base = Path(base_dir).resolve()
    base.mkdir(parents=True, exist_ok=True)

    unpacker = _Unpacker(
        base,
        strip_special_bits=strip_special_bits,
        clamp_timestamps=clamp_timestamps,
    )
    fold_entries(
        _Unpacker.add,
        _raise,
        _Unpacker.finish,
        check_security(entries),
        initial=unpacker,
    )
