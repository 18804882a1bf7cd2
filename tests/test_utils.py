"""Tests for utility functions."""

import json
import os
import tempfile
from pathlib import Path

from edgecfg.utils import (
    atomic_write_text,
    detect_encoding,
    normalize_line_endings,
    read_file_safe,
    remove_line_prefix,
    sort_alpha,
    to_sorted_json,
    trim_empty_lines,
    truncate_string,
)


class TestDetectEncoding:
    """Tests for encoding detection."""

    def test_utf8_file(self):
        """Test detection of UTF-8 file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.vcl"
            path.write_text("set x = \"你好世界\";", encoding="utf-8")

            assert detect_encoding(path) == "utf-8"

    def test_utf8_bom(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.vcl"
            path.write_bytes(b"\xef\xbb\xbfsub x {}")

            assert detect_encoding(path) == "utf-8-sig"

    def test_empty_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.vcl"
            path.write_bytes(b"")

            assert detect_encoding(path) == "utf-8"


class TestReadFileSafe:
    """Tests for safe file reading."""

    def test_read_utf8_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.ini"
            path.write_text('a="1"\n', encoding="utf-8")

            content, encoding = read_file_safe(path)
            assert content == 'a="1"\n'
            assert encoding == "utf-8"

    def test_normalizes_line_endings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.ini"
            path.write_bytes(b'a="1"\r\nb="2"\r\n')

            content, _ = read_file_safe(path)
            assert content == 'a="1"\nb="2"\n'

    def test_non_utf8_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.ini"
            path.write_bytes('greeting="grüße aus köln"\n'.encode("latin-1"))

            content, _ = read_file_safe(path)
            assert content.startswith('greeting="gr')
            assert content.endswith('n"\n')


class TestAtomicWrite:
    """Tests for atomic_write_text."""

    def test_creates_parents(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a" / "b" / "c.txt"
            atomic_write_text(path, "hello\n")

            assert path.read_text() == "hello\n"

    def test_replaces_without_leftovers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "c.txt"
            path.write_text("old")

            atomic_write_text(path, "new")

            assert path.read_text() == "new"
            assert os.listdir(tmpdir) == ["c.txt"]

    def test_writes_lf(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "c.txt"
            atomic_write_text(path, "a\nb\n")

            assert path.read_bytes() == b"a\nb\n"


class TestTextHelpers:
    """Tests for the text helpers used by the codecs."""

    def test_trim_empty_lines(self):
        assert trim_empty_lines("\n  \nset x;\n\n  indented;\n \n") == "set x;\n\n  indented;"

    def test_trim_empty_lines_all_blank(self):
        assert trim_empty_lines("\n\n") == ""

    def test_remove_line_prefix(self):
        assert remove_line_prefix("  a\n    b\nc\n", "  ") == "a\n  b\nc\n"

    def test_normalize_line_endings(self):
        assert normalize_line_endings("a\r\nb\rc\n") == "a\nb\nc\n"

    def test_sort_alpha_is_case_sensitive(self):
        assert sort_alpha(["b", "B", "a"]) == ["B", "a", "b"]

    def test_to_sorted_json(self):
        text = to_sorted_json({"b": 1, "a": {"d": "ü", "c": None}})

        assert text == '{\n  "a": {\n    "c": null,\n    "d": "ü"\n  },\n  "b": 1\n}\n'
        assert json.loads(text) == {"a": {"c": None, "d": "ü"}, "b": 1}


class TestTruncateString:
    """Tests for string truncation."""

    def test_no_truncation_needed(self):
        """Test that short strings are not truncated."""
        assert truncate_string("hello", 10) == "hello"

    def test_truncation_with_suffix(self):
        """Test truncation with default suffix."""
        result = truncate_string("hello world", 8)
        assert result == "hello..."
        assert len(result) == 8
