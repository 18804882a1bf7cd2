"""
Snippet codec: ``snippets/<execution point>.vcl``.

All snippets of one execution point share a file, ordered by priority. Each
snippet is a record made of a header block and a body block, both opened by
a divider line:

    # ===========...
    # name: my snippet
    # priority: 10
    # ===========...

    <snippet content>

Except for ``init`` and ``none``, the records are wrapped in a
``sub vcl_<type> { ... }`` subroutine (with the snippet content indented)
so that the file reads like regular VCL in an editor. ``init.vcl`` is always
written when there are snippets: it declares stubs for backends and tables
and is included by the wrapped files.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from .config import DIVIDER, SOURCE_EXT, SUB_INDENT, UNWRAPPED_EXECUTION_POINTS
from .model import ServiceConfig, Snippet
from .reporting import Reporter
from .utils import remove_line_prefix, sort_alpha, trim_empty_lines

INIT_FILE = f"init{SOURCE_EXT}"

_HEADER_LINE = re.compile(r"^# ([^:]+): ?(.*)$")

# header keys accepted as synonyms
_HEADER_ALIASES = {"prio": "priority"}


def needs_sub(execution_point: str) -> bool:
    """Whether snippets of this execution point are wrapped in a subroutine."""
    return execution_point not in UNWRAPPED_EXECUTION_POINTS


def _is_divider(line: str) -> bool:
    return line.strip() == DIVIDER


def _init_stubs(service: ServiceConfig) -> list[str]:
    lines = ["# Context for IDEs. Automatically generated."]
    for backend in service.backends:
        if backend.get("name"):
            lines.append(f"backend F_{backend['name']} {{}}")
    for dictionary in service.dictionaries:
        lines.append(f"table {dictionary.name} {{}}")
    return lines


def encode_execution_point(
    execution_point: str,
    snippets: list[Snippet],
    preamble: list[str] | None = None,
) -> str:
    """Render one snippets file. ``snippets`` must already be ordered."""
    wrapped = needs_sub(execution_point)
    indent = SUB_INDENT if wrapped else ""

    lines = list(preamble or [])
    if wrapped:
        lines.extend([
            'include "init.vcl";',
            "",
            f"sub vcl_{execution_point} {{",
            f"{SUB_INDENT}#FASTLY {execution_point}",
        ])

    for snippet in snippets:
        lines.extend([
            "",
            indent + DIVIDER,
            f"{indent}# name: {snippet.name}",
            f"{indent}# priority: {snippet.priority}",
            indent + DIVIDER,
            "",
        ])
        for line in trim_empty_lines(snippet.content).split("\n"):
            line = line.rstrip()
            lines.append(indent + line if line else "")

    lines.extend(["", indent + DIVIDER])
    if wrapped:
        lines.append("}")

    return "\n".join(lines) + "\n"


def encode_snippets(service: ServiceConfig, reporter: Reporter) -> dict[str, str]:
    """
    Render all snippets of the service as a filename -> content map.

    Within a file, snippets are ordered by ascending priority; snippets with
    equal priority keep the order they have in the service.
    """
    groups = service.snippets_by_execution_point()
    if not groups:
        return {}

    for snippet in service.snippets:
        if DIVIDER in snippet.content:
            reporter.warn(
                f"Snippet '{snippet.name}' contains the divider line, it will not be read back correctly"
            )

    files: dict[str, str] = {}
    init_snippets = groups.pop("init", [])
    files[INIT_FILE] = encode_execution_point("init", init_snippets, preamble=_init_stubs(service))
    reporter.debug(f"- Snippets {INIT_FILE} ({len(init_snippets)})")

    for execution_point, snippets in groups.items():
        filename = f"{execution_point}{SOURCE_EXT}"
        files[filename] = encode_execution_point(execution_point, snippets)
        reporter.debug(f"- Snippets {filename} ({len(snippets)})")

    return files


class _State(Enum):
    BEFORE_FIRST_RECORD = "before_first_record"
    IN_HEADER = "in_header"
    IN_BODY = "in_body"


@dataclass
class _Record:
    header: dict[str, str] = field(default_factory=dict)
    body: list[str] = field(default_factory=list)


def _records(text: str) -> Iterator[_Record]:
    """Split a snippets file into its header/body records."""
    state = _State.BEFORE_FIRST_RECORD
    record = _Record()

    for line in text.split("\n"):
        if state == _State.BEFORE_FIRST_RECORD:
            if _is_divider(line):
                state = _State.IN_HEADER
        elif state == _State.IN_HEADER:
            if _is_divider(line):
                state = _State.IN_BODY
            else:
                match = _HEADER_LINE.match(line.strip())
                if match:
                    key = match.group(1).strip().lower()
                    record.header[_HEADER_ALIASES.get(key, key)] = match.group(2).strip()
        elif state == _State.IN_BODY:
            if _is_divider(line):
                yield record
                record = _Record()
                state = _State.IN_HEADER
            else:
                record.body.append(line)

    if state == _State.IN_BODY:
        yield record
    # a header left open at the end is the trailer after the last record


def decode_execution_point(
    execution_point: str,
    text: str,
    reporter: Reporter | None = None,
) -> list[Snippet]:
    """Parse one snippets file into snippets of the given execution point."""
    snippets = []
    for record in _records(text):
        header = dict(record.header)
        name = header.pop("name", None)
        if not name:
            if reporter is not None:
                reporter.warn(f"Snippet without name in {execution_point}{SOURCE_EXT}, skipped")
            continue

        content = trim_empty_lines("\n".join(record.body))
        if needs_sub(execution_point):
            content = remove_line_prefix(content, SUB_INDENT)

        priority_text = header.pop("priority", "100")
        try:
            priority = int(priority_text)
        except ValueError:
            if reporter is not None:
                reporter.warn(f"Snippet '{name}' has invalid priority {priority_text!r}, using 100")
            priority = 100

        snippet = Snippet(
            name=name,
            type=execution_point,
            priority=priority,
            content=content,
            id=header.pop("id", None),
            dynamic="0",
        )
        header.pop("dynamic", None)
        snippet.extra.update(header)
        snippets.append(snippet)
    return snippets


def decode_snippets(files: dict[str, str], reporter: Reporter | None = None) -> list[Snippet]:
    """Parse all snippets files; the execution point comes from the file name."""
    snippets = []
    for filename in sort_alpha(files):
        execution_point = filename[: -len(SOURCE_EXT)] if filename.endswith(SOURCE_EXT) else filename
        found = decode_execution_point(execution_point, files[filename], reporter)
        if reporter is not None:
            reporter.debug(f"- Snippets {filename} ({len(found)})")
        snippets.extend(found)
    return snippets
