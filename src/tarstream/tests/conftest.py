"""Archive factory fixtures for tarstream tests.

Reference archives are generated with Python's ``tarfile`` module, which
is an independent implementation of the same format.  No mocks, no stubs.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

import io
import tarfile

import pytest

# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _tar_bytes(callback, *, format: int = tarfile.PAX_FORMAT) -> bytes:
    """Create a TAR archive in memory via *callback(tf)* and return bytes."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=format) as tf:
        callback(tf)
    return buf.getvalue()


def _add_regular(tf, name: str, content: bytes, **attrs) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(content)
    for key, value in attrs.items():
        setattr(info, key, value)
    tf.addfile(info, io.BytesIO(content))


def _add_special(tf, name: str, type_code: bytes, **attrs) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = type_code
    for key, value in attrs.items():
        setattr(info, key, value)
    tf.addfile(info)


class CountingReader:
    """A read-only binary stream that records how much was read.

    ``bytes_read`` is the running total and ``max_read`` the largest
    single read.
    """

    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)
        self.bytes_read = 0
        self.max_read = 0

    def read(self, n: int = -1) -> bytes:
        chunk = self._buf.read(n)
        self.bytes_read += len(chunk)
        self.max_read = max(self.max_read, len(chunk))
        return chunk


def _patch_first_header(data: bytes, offset: int, value: bytes) -> bytes:
    """Overwrite bytes in the first header block and fix its checksum."""
    raw = bytearray(data)
    raw[offset : offset + len(value)] = value
    # The checksum is computed over the entire 512-byte header block,
    # treating the checksum field itself as eight spaces (0x20).
    header = bytearray(raw[:512])
    header[148:156] = b"        "
    chksum = sum(header)
    raw[148:156] = b"%06o\0 " % chksum
    return bytes(raw)


# ---------------------------------------------------------------------------
# helper fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def counting_reader():
    """Factory for byte-counting streams."""
    return CountingReader


@pytest.fixture()
def patch_first_header():
    """Function that patches the first header and recomputes its checksum."""
    return _patch_first_header


# ---------------------------------------------------------------------------
# reference archives written by tarfile
# ---------------------------------------------------------------------------


@pytest.fixture()
def ustar_archive():
    """A plain multi-entry ustar archive."""

    def build(tf):
        _add_regular(tf, "hello.txt", b"Hello, world!\n")
        _add_special(tf, "data/", tarfile.DIRTYPE, mode=0o755)
        _add_regular(
            tf,
            "data/report.csv",
            b"a,b,c\n1,2,3\n",
            uid=1000,
            gid=100,
            uname="alice",
            gname="users",
            mtime=1_700_000_000,
        )

    return _tar_bytes(build, format=tarfile.USTAR_FORMAT)


@pytest.fixture()
def special_types_archive():
    """Links, devices and a FIFO, one of each."""

    def build(tf):
        _add_regular(tf, "target.txt", b"target\n")
        _add_special(tf, "sym", tarfile.SYMTYPE, linkname="target.txt")
        _add_special(tf, "hard", tarfile.LNKTYPE, linkname="target.txt")
        _add_special(tf, "null", tarfile.CHRTYPE, devmajor=1, devminor=3)
        _add_special(tf, "sda", tarfile.BLKTYPE, devmajor=8, devminor=0)
        _add_special(tf, "pipe", tarfile.FIFOTYPE)

    return _tar_bytes(build, format=tarfile.USTAR_FORMAT)


@pytest.fixture()
def gnu_longname_archive():
    """GNU archive whose only member needs an ``L`` long-name entry."""

    def build(tf):
        _add_regular(tf, "dir/" + "n" * 150 + ".txt", b"long\n")

    return _tar_bytes(build, format=tarfile.GNU_FORMAT)


@pytest.fixture()
def gnu_longlink_archive():
    """GNU archive with a symlink whose target needs a ``K`` entry."""

    def build(tf):
        _add_special(tf, "link", tarfile.SYMTYPE, linkname="t" * 150)

    return _tar_bytes(build, format=tarfile.GNU_FORMAT)


@pytest.fixture()
def pax_archive():
    """Archive whose member carries a PAX extended header."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        info = tarfile.TarInfo(name="proj/notes.txt")
        info.size = 5
        info.pax_headers = {"comment": "opaque metadata"}
        tf.addfile(info, io.BytesIO(b"notes"))
    return buf.getvalue()


# ---------------------------------------------------------------------------
# on-disk trees
# ---------------------------------------------------------------------------


@pytest.fixture()
def source_tree(tmp_path):
    """A small project tree under ``tmp_path / "src" / "proj"``."""
    base = tmp_path / "src"
    proj = base / "proj"
    (proj / "lib").mkdir(parents=True)
    (proj / "README").write_bytes(b"read me\n")
    (proj / "lib" / "a.c").write_bytes(b"int main(void) { return 0; }\n")
    script = proj / "run.sh"
    script.write_bytes(b"#!/bin/sh\necho hi\n")
    script.chmod(0o755)
    return base
