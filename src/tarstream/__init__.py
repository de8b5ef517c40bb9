"""tarstream — Lazy, streaming tar archives for Python.

Constant memory.  Security checks built in.  Zero dependencies.
Python 3.10+.
"""

from __future__ import annotations

__title__ = "tarstream"
__version__ = "0.1"
__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

from tarstream._check import check_security, check_tarbomb
from tarstream._core import create, extract
from tarstream._entries import (
    Done,
    Entries,
    Fail,
    Next,
    entries_from_list,
    fold_entries,
    map_entries,
    read,
    read_bytes,
    unfold_entries,
    write,
    write_bytes,
)
from tarstream._exceptions import (
    ChecksumError,
    InvalidPathComponentError,
    MalformedArchiveError,
    PathEscapeError,
    PathTooLongError,
    ShortTrailerError,
    TarbombDetectedError,
    TarPathError,
    TarstreamError,
    TrailingJunkError,
    TruncatedArchiveError,
    UnrepresentablePathError,
    UnsafeEntryError,
    UnsupportedFormatError,
)
from tarstream._pack import (
    get_directory_contents_recursive,
    pack,
    pack_directory_entry,
    pack_file_entry,
)
from tarstream._tarpath import (
    TarPath,
    from_tar_path,
    to_posix_path,
    to_tar_path,
    to_windows_path,
)
from tarstream._types import (
    DIRECTORY_FILE_MODE,
    EXECUTABLE_FILE_MODE,
    ORDINARY_FILE_MODE,
    BlockDevice,
    CharacterDevice,
    Directory,
    Entry,
    EntryContent,
    Format,
    HardLink,
    LazyBody,
    NamedPipe,
    NormalFile,
    OtherEntryType,
    SymbolicLink,
    directory_entry,
    empty_entry,
    file_entry,
    iter_body,
    read_body,
)
from tarstream._unpack import unpack

__all__ = [
    # High level
    "create",
    "extract",
    # Reading and writing
    "read",
    "read_bytes",
    "write",
    "write_bytes",
    # Packing and unpacking
    "pack",
    "unpack",
    "pack_file_entry",
    "pack_directory_entry",
    "get_directory_contents_recursive",
    # Checks
    "check_security",
    "check_tarbomb",
    # Entries
    "Entries",
    "Next",
    "Fail",
    "Done",
    "map_entries",
    "fold_entries",
    "unfold_entries",
    "entries_from_list",
    # Entry model
    "Entry",
    "EntryContent",
    "Format",
    "NormalFile",
    "Directory",
    "SymbolicLink",
    "HardLink",
    "CharacterDevice",
    "BlockDevice",
    "NamedPipe",
    "OtherEntryType",
    "LazyBody",
    "iter_body",
    "read_body",
    "empty_entry",
    "file_entry",
    "directory_entry",
    "ORDINARY_FILE_MODE",
    "EXECUTABLE_FILE_MODE",
    "DIRECTORY_FILE_MODE",
    # Paths
    "TarPath",
    "to_tar_path",
    "from_tar_path",
    "to_posix_path",
    "to_windows_path",
    # Exceptions
    "TarstreamError",
    "MalformedArchiveError",
    "ChecksumError",
    "TruncatedArchiveError",
    "ShortTrailerError",
    "TrailingJunkError",
    "UnsupportedFormatError",
    "TarPathError",
    "PathTooLongError",
    "InvalidPathComponentError",
    "UnrepresentablePathError",
    "UnsafeEntryError",
    "PathEscapeError",
    "TarbombDetectedError",
]
