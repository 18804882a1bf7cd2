"""
Dictionary codec: ``dictionaries/*.ini``.

One file per dictionary, ``key="value"`` per line, sorted by key so that
diffs stay small. Write-only dictionaries are stored as
``private.<name>.ini``; since the remote store never returns their values,
the file starts out as a documentation header and is filled in by hand with
variable expressions (``KEY="${{ENV_VAR}}"``). Once it holds items it is not
overwritten by later fetches.

Line format: the key runs up to the first ``=``, the value from the
following ``"`` to the last ``"`` on the line. Double quotes inside values
therefore survive, but keys containing ``=`` and anything containing a line
break cannot be represented and are rejected.
"""

from __future__ import annotations

import re

from .config import DICTIONARY_EXT, PRIVATE_DICT_PREFIX
from .errors import DictionaryFormatError
from .model import Dictionary, DictionaryItem
from .reporting import Reporter
from .utils import sort_alpha

_ITEM_LINE = re.compile(r'^([^=]+)="(.*)"$')
_INFO_LINE = re.compile(r"^# (digest|last_updated): (\S.*)$")


def dictionary_filename(dictionary: Dictionary) -> str:
    prefix = PRIVATE_DICT_PREFIX if dictionary.write_only else ""
    return f"{prefix}{dictionary.name}{DICTIONARY_EXT}"


def _check_item(dictionary: Dictionary, item: DictionaryItem) -> None:
    key, value = item.key, item.value
    if not key or "=" in key or key.startswith("#") or "\n" in key or "\r" in key:
        raise DictionaryFormatError(
            f"Dictionary '{dictionary.name}': key {key!r} cannot be stored in {DICTIONARY_EXT} format "
            "(keys must be non-empty, must not contain '=' or line breaks and must not start with '#')"
        )
    if "\n" in value or "\r" in value:
        raise DictionaryFormatError(
            f"Dictionary '{dictionary.name}': value of {key!r} contains a line break, "
            f"which the {DICTIONARY_EXT} format cannot represent"
        )


def _private_header(dictionary: Dictionary) -> list[str]:
    lines = [f"# Private (write-only) dictionary '{dictionary.name}'"]
    info = dictionary.info
    if info.last_updated:
        lines.append(f"# last_updated: {info.last_updated}")
    if info.item_count:
        lines.append(f"# item_count: {info.item_count}")
    if info.digest:
        lines.append(f"# digest: {info.digest}")
    lines.append("")
    if not dictionary.items:
        lines.extend([
            "# WHY IS THIS EMPTY?",
            "# This dictionary is write-only. Entries cannot be read back from the service.",
            "# Instead add the entries manually using environment variable replacement:",
            '#   KEY="${{ENV_VAR}}"',
            "# And ensure the variables are safely provided as secrets in your CI.",
            "# The next push of the configuration overwrites the remote dictionary",
            "# with these entries.",
        ])
    return lines


def encode_dictionary(dictionary: Dictionary) -> str:
    """Render one dictionary as .ini text."""
    lines = _private_header(dictionary) if dictionary.write_only else []
    for item in sort_alpha(dictionary.items, key=lambda i: i.key):
        _check_item(dictionary, item)
        lines.append(f'{item.key}="{item.value}"')
    return "\n".join(lines) + "\n"


def decode_dictionary(filename: str, content: str) -> Dictionary:
    """Parse one .ini file; name and write-only flag come from the file name."""
    name = filename[: -len(DICTIONARY_EXT)] if filename.endswith(DICTIONARY_EXT) else filename
    write_only = name.startswith(PRIVATE_DICT_PREFIX)
    if write_only:
        name = name[len(PRIVATE_DICT_PREFIX):]

    dictionary = Dictionary(name=name, write_only=write_only)

    for line in content.split("\n"):
        line = line.rstrip()
        if line.startswith("#"):
            info_match = _INFO_LINE.match(line)
            if info_match:
                setattr(dictionary.info, info_match.group(1), info_match.group(2))
            continue
        item_match = _ITEM_LINE.match(line)
        if item_match:
            dictionary.items.append(DictionaryItem(key=item_match.group(1), value=item_match.group(2)))

    dictionary.info.item_count = len(dictionary.items)
    return dictionary


def encode_dictionaries(
    dictionaries: list[Dictionary],
    existing: dict[str, str],
    reporter: Reporter,
) -> dict[str, str]:
    """
    Render all dictionaries as a filename -> content map.

    Args:
        dictionaries: Dictionaries to write
        existing: Current dictionaries/*.ini files (filename -> content)
        reporter: Receives warnings about write-only dictionaries

    Returns:
        Files the dictionaries directory should contain afterwards
    """
    files: dict[str, str] = {}

    for dictionary in dictionaries:
        filename = dictionary_filename(dictionary)
        if filename in files:
            reporter.warn(f"Duplicate dictionary '{dictionary.name}', only the last one is kept")

        if dictionary.write_only and not dictionary.items:
            stored = decode_dictionary(filename, existing[filename]) if filename in existing else None

            if stored is not None and stored.items:
                # local entries (typically variable expressions) win over unreadable remote ones
                reporter.debug(f"- Dictionary {filename} (private, NOT OVERWRITTEN)")
                remote_count = dictionary.info.item_count
                if remote_count is not None and remote_count != len(stored.items):
                    message = (
                        f"Private dictionary '{dictionary.name}' seems to be modified remotely, "
                        f"found different number of entries: local {len(stored.items)} vs. "
                        f"remote {remote_count}. The new/changed entries cannot be read back."
                    )
                    if dictionary.info.last_updated:
                        message += f" Last updated remotely: {dictionary.info.last_updated}"
                    reporter.warn(message)
                files[filename] = existing[filename]
                continue

            if filename not in existing and dictionary.info.item_count:
                reporter.warn(
                    f"Private dictionary '{dictionary.name}' has {dictionary.info.item_count} unknown entries. "
                    f"Add them manually to {filename} using environment variable replacement: "
                    'KEY="${{VAR}}"'
                )

        reporter.debug(f"- Dictionary {filename}{' (private)' if dictionary.write_only else ''}")
        files[filename] = encode_dictionary(dictionary)

    return files


def decode_dictionaries(files: dict[str, str], reporter: Reporter | None = None) -> list[Dictionary]:
    """Parse all dictionary files, in file name order."""
    dictionaries = []
    for filename in sort_alpha(files):
        dictionary = decode_dictionary(filename, files[filename])
        if reporter is not None:
            reporter.debug(f"- Dictionary {filename}{' (write-only)' if dictionary.write_only else ''}")
        dictionaries.append(dictionary)
    return dictionaries
