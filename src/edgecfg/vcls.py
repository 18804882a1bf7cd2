"""
Raw VCL codec: ``vcl/*.vcl``.

Each file starts with a ``# main: true|false`` marker line followed by a
blank line and the VCL source.
"""

from __future__ import annotations

import re
from enum import Enum

from .config import SOURCE_EXT
from .model import RawFile
from .reporting import Reporter
from .utils import sort_alpha, trim_empty_lines

_MAIN_MARKER = re.compile(r"^#\s*main:\s*(\S+)\s*$")


def encode_vcl(vcl: RawFile) -> str:
    content = trim_empty_lines(vcl.content)
    return f"# main: {str(bool(vcl.main)).lower()}\n\n{content}\n"


def encode_vcls(vcls: list[RawFile], reporter: Reporter) -> dict[str, str]:
    """Render the VCL files as a filename -> content map."""
    files: dict[str, str] = {}
    for vcl in vcls:
        if not vcl.name.endswith(SOURCE_EXT):
            reporter.warn(f"VCL file name does not end with {SOURCE_EXT}, it will not be read back: {vcl.name}")
        if vcl.name in files:
            reporter.warn(f"Duplicate VCL file '{vcl.name}', only the last one is kept")
        reporter.debug(f"- VCL {vcl.name}{' (main)' if vcl.main else ''}")
        files[vcl.name] = encode_vcl(vcl)
    return files


class _State(Enum):
    BEFORE_MARKER = "before_marker"
    IN_CONTENT = "in_content"


def decode_vcl(filename: str, text: str) -> RawFile:
    """
    Parse one VCL file.

    Lines before the ``# main:`` marker are dropped. A file without any
    marker is taken as a whole and is not the main file.
    """
    state = _State.BEFORE_MARKER
    main = False
    content: list[str] = []

    for line in text.split("\n"):
        if state == _State.BEFORE_MARKER:
            match = _MAIN_MARKER.match(line.strip())
            if match:
                main = match.group(1).lower() == "true"
                state = _State.IN_CONTENT
        else:
            content.append(line)

    if state == _State.BEFORE_MARKER:
        return RawFile(name=filename, content=trim_empty_lines(text), main=False)

    return RawFile(name=filename, content=trim_empty_lines("\n".join(content)), main=main)


def decode_vcls(files: dict[str, str], reporter: Reporter | None = None) -> list[RawFile]:
    """Parse all VCL files, in file name order."""
    vcls = []
    for filename in sort_alpha(files):
        vcl = decode_vcl(filename, files[filename])
        if reporter is not None:
            reporter.debug(f"- VCL {filename}{' (main)' if vcl.main else ''}")
        vcls.append(vcl)
    return vcls
