"""Exception hierarchy for tarstream.

All exceptions inherit from ``TarstreamError`` so callers can catch the
package's entire error surface with a single ``except`` clause.  Decoding
errors are not raised by the reader itself: they travel inside a ``Fail``
node and are raised when the failing point of the sequence is consumed.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tarstream._types import Entry


class TarstreamError(Exception):
    """Base exception for all tarstream errors."""


# ---- decoding ---------------------------------------------------------------


class MalformedArchiveError(TarstreamError):
    """The archive is structurally invalid.

    Raised for unparseable numeric fields and other structural defects
    that have no more specific subclass.
    """


class ChecksumError(MalformedArchiveError):
    """A header block's checksum does not match its contents."""


class TruncatedArchiveError(MalformedArchiveError):
    """The stream ended inside a header or body, or before any trailer."""


class ShortTrailerError(TruncatedArchiveError):
    """A single zero block was not followed by a second zero block."""


class TrailingJunkError(MalformedArchiveError):
    """Non-zero data follows the end-of-archive trailer."""


class UnsupportedFormatError(MalformedArchiveError):
    """The header magic is not one of the recognised dialects.

    Only raised when strict format checking is enabled; otherwise such
    headers are read as V7.
    """


# ---- path conversion --------------------------------------------------------


class TarPathError(TarstreamError):
    """A path cannot be converted to or from its portable archive form."""


class PathTooLongError(TarPathError):
    """The path is longer than even the GNU long-name extension accepts."""


class InvalidPathComponentError(TarPathError):
    """The path is absolute, has an empty component, or climbs above
    its root with ``..``.
    """


class UnrepresentablePathError(TarPathError):
    """The archive path has no rendering on the requested platform."""


# ---- security policy --------------------------------------------------------


class UnsafeEntryError(TarstreamError):
    """An entry violates an extraction security policy."""

    def __init__(self, message: str, path: str, entry: Entry | None = None):
        super().__init__(message)
        self.path = path
        self.entry = entry


class PathEscapeError(UnsafeEntryError):
    """An entry path (or link target) resolves outside the extraction root.

    Raised for absolute paths (``/etc/passwd``) and for ``..`` components
    that climb above the root (``a/../../b``).
    """


class TarbombDetectedError(UnsafeEntryError):
    """An entry is not inside the expected top-level directory."""

    def __init__(
        self,
        message: str,
        path: str,
        entry: Entry | None = None,
        expected_root: str = "",
    ):
        super().__init__(message, path, entry)
        self.expected_root = expected_root
