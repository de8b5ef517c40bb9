"""The security checker: path-escape and tarbomb filters over entries.

Both checks are ``Entries -> Entries`` transforms built on
``map_entries``.  They look at path strings only, never at the file
system, so they can run as a pre-pass before anything is written.  A
violation turns into a ``Fail`` node exactly where the offending entry
would have been consumed.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "check_security",
    "check_tarbomb",
    "escape_reason",
)

import logging
import re

from tarstream._entries import Entries, map_entries
from tarstream._exceptions import PathEscapeError, TarbombDetectedError
from tarstream._types import (
    Directory,
    Entry,
    HardLink,
    OtherEntryType,
    SymbolicLink,
)

log = logging.getLogger("tarstream.security")

# A single leading letter and colon is a drive designator, so ``C:evil``
# and ``a:b`` are both absolute.  A colon anywhere else is a plain
# character.
_DRIVE_RE = re.compile(r"^[A-Za-z]:")

# PAX header entries are not extracted, so they are exempt from the
# tarbomb check.
_PAX_TYPES = (b"x", b"g")


def _is_absolute(path: str) -> bool:
    return path.replace("\\", "/").startswith("/") or bool(_DRIVE_RE.match(path))


def escape_reason(path: str) -> str | None:
    """Return why *path* would land outside the extraction root, or None.

    Backslashes are treated as separators so that Windows-shaped paths
    cannot sneak past.  ``..`` is allowed as long as it never climbs
    above the root: ``a/../b`` is fine, ``a/../../b`` is not.
    A letter and colon at the start is a drive designator, so ``a:b`` is
    absolute while ``ab:c`` and ``dir/a:b`` are not.
    """
    if _is_absolute(path):
        return "absolute path"
    if _depth(path) < 0:
        return "path traversal component '..' climbs above the root"
    return None


def _depth(path: str) -> int:
    """Return how deep *path* ends below the root.

    Returns -1 at the first ``..`` that climbs above the root.
    """
    depth = 0
    for part in path.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            depth -= 1
            if depth < 0:
                return depth
        else:
            depth += 1
    return depth


def _reject(entry: Entry, candidate: str, what: str, reason: str) -> None:
    log.warning("Rejected entry %r: %s in %s", entry.path.value, reason, what)
    raise PathEscapeError(
        f"Unsafe {what} ({reason}): {candidate!r}",
        path=entry.path.value,
        entry=entry,
    )


def _ensure_contained(entry: Entry, candidate: str, what: str) -> None:
    reason = escape_reason(candidate)
    if reason is not None:
        _reject(entry, candidate, what, reason)


def _check_entry_security(entry: Entry) -> Entry:
    path = entry.path.value
    _ensure_contained(entry, path, "entry path")
    if _depth(path) == 0 and not isinstance(entry.content, Directory):
        # Only a directory may stand for the root itself.
        _reject(entry, path, "entry path", "resolves to the extraction root")

    match entry.content:
        case HardLink(target=target):
            # Hard link targets name another archive member.
            _ensure_contained(entry, target, "hard link target")
        case SymbolicLink(target=target):
            # Relative targets resolve against the link's directory.
            resolved = target
            parent = path.rstrip("/").rpartition("/")[0]
            if parent and not _is_absolute(target):
                resolved = f"{parent}/{target}"
            _ensure_contained(entry, resolved, "symbolic link target")

    return entry


def check_security(entries: Entries) -> Entries:
    """Fail on the first entry whose path or link target escapes the root.

    An entry other than a directory whose path resolves to the root
    itself (``.``, ``a/..``) fails too.  Safe entries pass through
    unchanged.
    """
    return map_entries(_check_entry_security, entries)


def check_tarbomb(expected_root: str, entries: Entries) -> Entries:
    """Fail on the first entry that is not inside *expected_root*.

    Layer this on top of ``check_security``, never instead of it.
    """
    expected = expected_root.strip("/")

    def check(entry: Entry) -> Entry:
        match entry.content:
            case OtherEntryType(type_code=type_code) if type_code in _PAX_TYPES:
                return entry
        top = entry.path.value.split("/", 1)[0]
        if top != expected:
            log.warning(
                "Rejected entry %r: outside expected directory %r",
                entry.path.value,
                expected,
            )
            raise TarbombDetectedError(
                f"Entry is outside the expected top-level directory "
                f"{expected!r}: {entry.path.value!r}",
                path=entry.path.value,
                entry=entry,
                expected_root=expected,
            )
        return entry

    return map_entries(check, entries)
