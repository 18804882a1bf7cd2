"""
Utility functions for edgecfg.

Includes encoding detection for reading working-copy files, text helpers used
by the codecs, deterministic JSON output and atomic file writes.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import chardet

T = TypeVar("T")


def detect_encoding(file_path: Path, sample_size: int = 8192) -> str:
    """
    Detect the encoding of a file.

    Strategy:
    1. Check for BOM markers first
    2. Try UTF-8 (what edgecfg itself writes)
    3. Fall back to chardet only if UTF-8 fails

    Args:
        file_path: Path to the file
        sample_size: Number of bytes to sample for detection

    Returns:
        Detected encoding name (e.g., 'utf-8', 'latin-1')
    """
    with open(file_path, "rb") as f:
        sample = f.read(sample_size)

    if not sample:
        return "utf-8"

    if sample.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if sample.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if sample.startswith(b"\xfe\xff"):
        return "utf-16-be"

    try:
        sample.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    result = chardet.detect(sample)
    encoding = result.get("encoding")

    if encoding is None:
        return "utf-8"

    encoding = encoding.lower()
    if encoding in ("ascii", "utf-8", "utf8"):
        return "utf-8"

    return encoding


def read_file_safe(file_path: Path) -> tuple[str, str]:
    """
    Read a text file written by edgecfg or edited by hand.

    Tries UTF-8 first; if that fails the encoding is detected and the file is
    read with replacement characters for undecodable bytes. Line endings are
    normalized to LF.

    Returns:
        Tuple of (content, encoding_used)
    """
    try:
        with open(file_path, encoding="utf-8", errors="strict") as f:
            return normalize_line_endings(f.read()), "utf-8"
    except UnicodeDecodeError:
        pass

    detected = detect_encoding(file_path)
    try:
        with open(file_path, encoding=detected, errors="replace") as f:
            return normalize_line_endings(f.read()), detected
    except LookupError:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            return normalize_line_endings(f.read()), "utf-8"


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to path via a temporary file in the same directory and os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def normalize_line_endings(content: str) -> str:
    """Normalize CRLF and CR line endings to LF."""
    return content.replace("\r\n", "\n").replace("\r", "\n")


def truncate_string(s: str, max_length: int, suffix: str = "...") -> str:
    """Truncate a string to max length, adding suffix if truncated."""
    if len(s) <= max_length:
        return s
    return s[:max_length - len(suffix)] + suffix


def trim_empty_lines(text: str) -> str:
    """Remove leading and trailing blank lines."""
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def remove_line_prefix(text: str, prefix: str) -> str:
    """Remove prefix from every line that starts with it."""
    return "\n".join(
        line[len(prefix):] if line.startswith(prefix) else line for line in text.split("\n")
    )


def to_sorted_json(obj: Any, indent: int = 2) -> str:
    """Serialize obj as JSON with alphabetically sorted keys and a trailing newline."""
    return json.dumps(obj, indent=indent, sort_keys=True, ensure_ascii=False) + "\n"


def sort_alpha(items: Iterable[T], key: Callable[[T], str] = str) -> list[T]:
    """Sort alphabetically (case-sensitive, stable) by key."""
    return sorted(items, key=key)
