"""The sandbox: host path resolution and metadata sanitisation for unpack.

Every destination path is resolved against a strictly enforced base
directory.  ``check_security`` has already rejected escaping entries by
the time unpack asks for a path; the resolver repeats the containment
check against the real file system.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "resolve_link_source",
    "resolve_member_path",
    "sanitise_mode",
    "sanitise_mtime",
)

import os
import stat
import time
from pathlib import Path

from tarstream._check import escape_reason
from tarstream._exceptions import PathEscapeError

# ---- path resolution -------------------------------------------------------


def _is_inside(path: Path, base: Path) -> bool:
    return path == base or str(path).startswith(str(base) + os.sep)


def resolve_member_path(
    base_dir: str | os.PathLike[str],
    member_name: str,
) -> Path:
    """Resolve the archive path *member_name* under *base_dir*.

    Pipeline (in order):

    1.  Reject absolute paths and ``..`` that climbs above the root.
    2.  Drop empty and ``.`` components; collapse ``..``.
    3.  Check the resolved result is still inside *base_dir*.

    A name that collapses to nothing (``./``) resolves to *base_dir*.

    Raises ``PathEscapeError`` for any violation.
    """
    base = Path(base_dir).resolve()

    reason = escape_reason(member_name)
    if reason is not None:
        raise PathEscapeError(
            f"Unsafe member name ({reason}): {member_name!r}", path=member_name
        )

    clean_parts: list[str] = []
    for part in member_name.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            clean_parts.pop()
            continue
        clean_parts.append(part)

    resolved = base.joinpath(*clean_parts)

    # Final containment check against the resolved path.
    try:
        real = resolved.resolve()
    except OSError:
        # Parent dirs don't exist yet; the normalised parts stay inside base.
        real = resolved

    if not _is_inside(real, base):
        raise PathEscapeError(
            f"Resolved path escapes base directory: {member_name!r}",
            path=member_name,
        )

    return resolved


def resolve_link_source(
    base_dir: str | os.PathLike[str],
    link_name: str,
    target: str,
    *,
    symbolic: bool,
) -> Path:
    """Resolve the file a link entry points at.

    Hard link targets name another archive member; symbolic link targets
    are relative to the directory holding the link.
    """
    if symbolic:
        parent = link_name.rstrip("/").rpartition("/")[0]
        if parent:
            target = f"{parent}/{target}"
    return resolve_member_path(base_dir, target)


# ---- permission / timestamp sanitisation -----------------------------------


def sanitise_mode(
    mode: int,
    *,
    strip_special_bits: bool = True,
) -> int:
    """Keep only permission bits of *mode*.

    By default also removes setuid (``04000``), setgid (``02000``), and
    sticky (``01000``) bits.
    """
    mode &= 0o7777
    if strip_special_bits:
        mode &= ~(stat.S_ISUID | stat.S_ISGID | stat.S_ISVTX)
    return mode


def sanitise_mtime(
    mtime: float | int,
    *,
    clamp_timestamps: bool = True,
) -> float:
    """Clamp *mtime* to a safe range.

    When *clamp_timestamps* is ``True``, values outside ``[0, 2**32 - 1]``
    are replaced by the current time.
    """
    if not clamp_timestamps:
        return float(mtime)
    max_ts = 2**32 - 1
    if mtime < 0 or mtime > max_ts:
        return time.time()
    return float(mtime)
