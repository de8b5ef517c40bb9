"""Tests for the lazy ``Entries`` sequence: reading, writing, combinators."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

import io

import pytest

from tarstream import (
    ChecksumError,
    Done,
    Fail,
    LazyBody,
    MalformedArchiveError,
    Next,
    PathEscapeError,
    ShortTrailerError,
    TarPath,
    TrailingJunkError,
    TruncatedArchiveError,
    entries_from_list,
    file_entry,
    fold_entries,
    iter_body,
    map_entries,
    read,
    read_body,
    read_bytes,
    to_tar_path,
    unfold_entries,
    write,
    write_bytes,
)
from tarstream._codec import encode_entry


def _entries(count: int, size: int = 100):
    return [
        file_entry(to_tar_path(False, f"file{i}.txt"), bytes([65 + i]) * size)
        for i in range(count)
    ]


class TestTerminalNodes:
    """How the end of an archive is recognised."""

    def test_empty_archive(self):
        assert read_bytes(bytes(1024)) == Done()

    def test_record_padding_tolerated(self):
        assert read_bytes(bytes(10240)) == Done()

    def test_entries_then_padding(self):
        data = write_bytes(_entries(2)) + bytes(512 * 16)
        assert len(list(read_bytes(data))) == 2

    def test_single_zero_block(self):
        node = read_bytes(bytes(512))
        assert isinstance(node, Fail)
        assert isinstance(node.error, ShortTrailerError)

    def test_zero_block_then_header(self):
        data = bytes(512) + write_bytes(_entries(1))
        node = read_bytes(data)
        assert isinstance(node.error, ShortTrailerError)

    def test_short_trailer_is_truncation(self):
        assert issubclass(ShortTrailerError, TruncatedArchiveError)

    def test_empty_input(self):
        node = read_bytes(b"")
        assert isinstance(node, Fail)
        assert isinstance(node.error, TruncatedArchiveError)

    def test_missing_trailer(self):
        node = read_bytes(encode_entry(_entries(1)[0]))
        assert isinstance(node, Next)
        rest = node.rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, TruncatedArchiveError)
        assert "trailer" in str(rest.error)

    def test_partial_header(self):
        node = read_bytes(b"\x01" * 100)
        assert isinstance(node.error, TruncatedArchiveError)

    def test_truncated_body(self):
        data = write_bytes(_entries(1, size=1000))[:600]
        node = read_bytes(data)
        assert isinstance(node, Fail)
        assert isinstance(node.error, TruncatedArchiveError)
        assert "body" in str(node.error)

    def test_trailing_junk(self):
        data = write_bytes(_entries(1)) + b"junk"
        node = read_bytes(data)
        assert isinstance(node, Next)
        rest = node.rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, TrailingJunkError)

    def test_long_name_without_header(self):
        long_entry = file_entry(to_tar_path(False, "x" * 200), b"")
        # Keep only the ``L`` header and its data block.
        data = encode_entry(long_entry)[:1024] + bytes(1024)
        node = read_bytes(data)
        assert isinstance(node.error, MalformedArchiveError)


class TestFailRemaining:
    """``Fail`` nodes from in-memory input carry the unconsumed bytes."""

    def test_remaining_starts_at_failing_entry(self):
        data = bytearray(write_bytes(_entries(2)))
        data[1024 + 10] ^= 0xFF
        node = read_bytes(bytes(data))
        rest = node.rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, ChecksumError)
        assert rest.remaining == bytes(data[1024:])

    def test_stream_input_has_no_remaining(self):
        node = read(io.BytesIO(bytes(512)))
        assert isinstance(node, Fail)
        assert node.remaining is None


class TestLaziness:
    """Bytes are pulled from the stream only as nodes are forced."""

    def test_only_first_entry_read(self, counting_reader):
        data = write_bytes(_entries(3))
        stream = counting_reader(data)
        node = read(stream)
        assert isinstance(node, Next)
        assert node.entry.name == "file0.txt"
        assert stream.bytes_read == 512

    def test_each_rest_reads_one_entry(self, counting_reader):
        stream = counting_reader(write_bytes(_entries(3)))
        node = read(stream)
        node = node.rest
        assert node.entry.name == "file1.txt"
        # The unread body of file0.txt is skipped, then one header read.
        assert stream.bytes_read == 1536

    def test_full_consumption(self, counting_reader):
        data = write_bytes(_entries(3))
        stream = counting_reader(data)
        assert [e.name for e in read(stream)] == [
            "file0.txt",
            "file1.txt",
            "file2.txt",
        ]
        assert stream.bytes_read == len(data)

    def test_map_is_lazy(self, counting_reader):
        stream = counting_reader(write_bytes(_entries(3)))
        seen = []

        def record(entry):
            seen.append(entry.name)
            return entry

        node = map_entries(record, read(stream))
        assert seen == ["file0.txt"]
        assert stream.bytes_read == 512
        node.rest
        assert seen == ["file0.txt", "file1.txt"]

    def test_rest_taken_twice(self):
        node = read_bytes(write_bytes(_entries(2)))
        node.rest
        with pytest.raises(RuntimeError, match="already been consumed"):
            node.rest


class TestStreamBodies:
    """Bodies read from a stream are pulled on demand, in chunks."""

    BIG = 1024 * 1024 + 100

    def _big_archive(self) -> bytes:
        return write_bytes(
            [
                file_entry(to_tar_path(False, "big.bin"), b"\xab" * self.BIG),
                file_entry(to_tar_path(False, "after.txt"), b"after"),
            ]
        )

    def test_large_body_not_read_with_header(self, counting_reader):
        stream = counting_reader(self._big_archive())
        node = read(stream)
        assert node.entry.size == self.BIG
        assert isinstance(node.entry.content.body, LazyBody)
        assert stream.bytes_read == 512

    def test_large_body_read_in_chunks(self, counting_reader):
        stream = counting_reader(self._big_archive())
        node = read(stream)
        total = 0
        for chunk in iter_body(node.entry.content.body):
            assert chunk == b"\xab" * len(chunk)
            total += len(chunk)
        assert total == self.BIG
        assert stream.bytes_read == 512 + self.BIG
        assert stream.max_read <= 65536

    def test_unread_body_skipped_in_chunks(self, counting_reader):
        stream = counting_reader(self._big_archive())
        node = read(stream).rest
        assert node.entry.name == "after.txt"
        assert read_body(node.entry.content.body) == b"after"
        assert stream.max_read <= 65536

    def test_partly_read_body_skipped(self):
        node = read(io.BytesIO(self._big_archive()))
        assert node.entry.content.body.read(10) == b"\xab" * 10
        assert node.rest.entry.name == "after.txt"

    def test_body_unreadable_after_rest(self):
        node = read(io.BytesIO(self._big_archive()))
        body = node.entry.content.body
        node.rest
        with pytest.raises(RuntimeError, match="no longer readable"):
            body.read(1)

    def test_truncated_body_raises_on_read(self):
        data = write_bytes(_entries(1, size=2000))[:1500]
        node = read(io.BytesIO(data))
        assert isinstance(node, Next)
        with pytest.raises(TruncatedArchiveError, match="file0.txt"):
            read_body(node.entry.content.body)

    def test_truncated_unread_body_fails_rest(self):
        data = write_bytes(_entries(1, size=2000))[:1500]
        rest = read(io.BytesIO(data)).rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, TruncatedArchiveError)

    def test_copy_through_streams(self, counting_reader):
        original = self._big_archive()
        out = io.BytesIO()
        stream = counting_reader(original)
        write(read(stream), out)
        assert out.getvalue() == original
        assert stream.max_read <= 65536

    def test_in_memory_bodies_are_bytes(self):
        node = read_bytes(write_bytes(_entries(1)))
        assert node.entry.content.body == b"A" * 100

    def test_oversized_long_name_rejected(self):
        entry = file_entry(TarPath("x" * 5000), b"")
        node = read_bytes(encode_entry(entry) + bytes(1024))
        assert isinstance(node, Fail)
        assert isinstance(node.error, MalformedArchiveError)
        assert "path limit" in str(node.error)


class TestCombinators:
    """``map_entries``, ``fold_entries`` and ``unfold_entries``."""

    def test_map_transforms(self):
        entries = entries_from_list(_entries(2))
        renamed = map_entries(
            lambda e: e.replace(path=to_tar_path(False, "renamed/" + e.name)),
            entries,
        )
        assert [e.name for e in renamed] == [
            "renamed/file0.txt",
            "renamed/file1.txt",
        ]

    def test_map_failure_ends_sequence(self):
        def reject_second(entry):
            if entry.name == "file1.txt":
                raise PathEscapeError("rejected", entry.name)
            return entry

        node = map_entries(reject_second, entries_from_list(_entries(3)))
        assert node.entry.name == "file0.txt"
        rest = node.rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, PathEscapeError)

    def test_map_passes_fail_through(self):
        failed = Fail(ChecksumError("bad"))
        assert map_entries(lambda e: e, failed) is failed

    def test_fold_counts(self):
        total = fold_entries(
            lambda acc, e: acc + e.size,
            lambda acc, err: -1,
            lambda acc: acc,
            read_bytes(write_bytes(_entries(3, size=10))),
            0,
        )
        assert total == 30

    def test_fold_reports_failure_with_accumulator(self):
        data = write_bytes(_entries(2))[:-1024]
        result = fold_entries(
            lambda acc, e: acc + [e.name],
            lambda acc, err: ("failed", acc, type(err)),
            lambda acc: ("done", acc),
            read_bytes(data),
            [],
        )
        assert result == (
            "failed",
            ["file0.txt", "file1.txt"],
            TruncatedArchiveError,
        )

    def test_unfold_builds_sequence(self):
        def step(n):
            if n == 3:
                return None
            return file_entry(to_tar_path(False, f"n{n}"), b""), n + 1

        assert [e.name for e in unfold_entries(step, 0)] == ["n0", "n1", "n2"]

    def test_unfold_turns_os_error_into_fail(self):
        def step(n):
            if n == 1:
                raise FileNotFoundError("gone")
            return file_entry(to_tar_path(False, "first"), b""), n + 1

        node = unfold_entries(step, 0)
        rest = node.rest
        assert isinstance(rest, Fail)
        assert isinstance(rest.error, FileNotFoundError)

    def test_iteration_raises_carried_error(self):
        with pytest.raises(ShortTrailerError):
            list(read_bytes(bytes(512)))


class TestWrite:
    """Encoding sequences back into archives."""

    def test_ends_with_two_zero_blocks(self):
        data = write_bytes(_entries(1))
        assert len(data) == 2048
        assert data[-1024:] == bytes(1024)

    def test_empty_sequence(self):
        assert write_bytes(Done()) == bytes(1024)

    def test_copy_through(self):
        original = write_bytes(_entries(3))
        assert write_bytes(read_bytes(original)) == original

    def test_failing_sequence_raises_after_earlier_entries(self):
        data = write_bytes(_entries(2))[:-1024]
        out = io.BytesIO()
        with pytest.raises(TruncatedArchiveError):
            write(read_bytes(data), out)
        assert out.getvalue() == data

    def test_lazy_body_written_in_chunks(self):
        body = _Repeat(b"z", 200_000)
        data = write_bytes([file_entry(to_tar_path(False, "z.bin"), body)])
        assert body.reads == [65536, 65536, 65536, 3392]
        assert read_bytes(data).entry.content.body == b"z" * 200_000

    def test_short_lazy_body_rejected(self):
        body = _Repeat(b"z", 100, produce=60)
        with pytest.raises(ValueError, match="produced 60 bytes, expected 100"):
            write_bytes([file_entry(to_tar_path(False, "z.bin"), body)])


class _Repeat(LazyBody):
    """A lazy body repeating one byte; *produce* caps what it yields."""

    __slots__ = ("_byte", "_left", "reads")

    def __init__(self, byte: bytes, size: int, produce: int | None = None):
        super().__init__(size)
        self._byte = byte
        self._left = size if produce is None else produce
        self.reads = []

    def read(self, n: int = -1) -> bytes:
        n = self._left if n < 0 else min(n, self._left)
        self._left -= n
        if n:
            self.reads.append(n)
        return self._byte * n
