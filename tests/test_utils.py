"""Tests for chunk layout, size helpers and path resolution."""
import math
import os

import pytest

from parallel_upload.utils import (
    calculate_chunks,
    format_size,
    format_speed,
    parse_size,
    read_range,
    resolve_paths,
)


class TestCalculateChunks:
    @pytest.mark.parametrize(
        "file_size,chunk_size",
        [(1, 1), (10, 3), (1024, 1024), (1025, 1024), (5000, 7), (7, 5000)],
    )
    def test_count_and_total(self, file_size, chunk_size):
        chunks = calculate_chunks(file_size, chunk_size)

        assert len(chunks) == math.ceil(file_size / chunk_size)
        assert sum(length for _, length in chunks) == file_size
        assert all(0 < length <= chunk_size for _, length in chunks)

    def test_ranges_are_contiguous(self):
        chunks = calculate_chunks(10, 4)

        assert chunks == [(0, 4), (4, 4), (8, 2)]

    def test_exact_chunk_size_is_single_chunk(self):
        assert calculate_chunks(1024, 1024) == [(0, 1024)]

    def test_empty_file_is_one_empty_chunk(self):
        assert calculate_chunks(0, 1024) == [(0, 0)]

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError, match="positive"):
            calculate_chunks(10, 0)


def test_read_range(make_file, sample_bytes):
    path = make_file("data.bin", sample_bytes)

    assert read_range(str(path), 100, 50) == sample_bytes[100:150]
    assert read_range(str(path), len(sample_bytes) - 3, 50) == sample_bytes[-3:]


class TestParseSize:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("512", 512),
            ("512B", 512),
            ("4K", 4096),
            ("4KB", 4096),
            ("4 KiB", 4096),
            ("2mb", 2 * 1024**2),
            ("1GB", 1024**3),
            ("2TB", 2 * 1024**4),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_size(text) == expected

    @pytest.mark.parametrize("text", ["", "MB", "1.5MB", "10PB", "-1", "4BK", "5iB"])
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="Invalid size format"):
            parse_size(text)


def test_format_size():
    assert format_size(0) == "0.00 B"
    assert format_size(1536) == "1.50 KB"
    assert format_size(3 * 1024**3) == "3.00 GB"
    assert format_size(5 * 1024**5) == "5120.00 TB"


def test_format_speed():
    assert format_speed(2 * 1024**2) == "2.00 MB/s"
    assert format_speed(0) == "0.00 B/s"
    assert format_speed(1024**4) == "1.00 TB/s"


class TestResolvePaths:
    def test_expands_directories_recursively(self, make_file, tmp_path):
        a = make_file("a.txt", b"a")
        b = make_file("sub/b.txt", b"b")
        c = make_file("sub/deeper/c.txt", b"c")

        resolved = resolve_paths([str(tmp_path)])

        assert resolved == [os.path.realpath(p) for p in (a, b, c)]

    def test_missing_path_is_reported_and_skipped(self, make_file, tmp_path, capsys):
        a = make_file("a.txt", b"a")

        resolved = resolve_paths([str(tmp_path / "missing.txt"), str(a)])

        assert resolved == [os.path.realpath(a)]
        assert "Error:" in capsys.readouterr().err

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
    def test_special_file_is_skipped_with_warning(self, tmp_path, capsys):
        fifo = tmp_path / "pipe"
        os.mkfifo(fifo)

        assert resolve_paths([str(fifo)]) == []
        assert "not a file or directory" in capsys.readouterr().err
