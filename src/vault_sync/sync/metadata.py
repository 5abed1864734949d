"""Embedded sync metadata codec.

A synced document carries a small flat ``key -> value`` map at the very end
of its content.  Each entry is written as a markdown link-reference comment,
so renderers hide the whole block and any line can be ignored on its own::

    <body>

    [//]: # (sync-metadata-start)
    [//]: # (remote_path: plans/2026/q3.md)
    [//]: # (remote_sha: 5b0e...)
    [//]: # (sync-metadata-end)

Backslash, parentheses, newline and carriage return are escaped in keys and
values, and ``:`` is escaped in keys, so any flat string map round-trips.

Two older trailer formats are still recognised: ``key: value`` lines between
``---`` fences either inside a ``<!-- sync-metadata`` comment or right after
a ``<!-- sync-metadata -->`` line.  ``extract()`` reports them with
``legacy=True`` and ``update()`` always writes the current format.

All functions are pure.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import NamedTuple

from vault_sync.errors import MalformedMetadataError

logger = logging.getLogger(__name__)

START_LINE = "[//]: # (sync-metadata-start)"
END_LINE = "[//]: # (sync-metadata-end)"
SEPARATOR = "\n\n" + START_LINE + "\n"

KEY_PATH = "remote_path"
KEY_SHA = "remote_sha"
KEY_LAST_SYNC = "last_sync"
KEY_STATUS = "sync_status"

_ENTRY_PREFIX = "[//]: # ("
_ENTRY_SUFFIX = ")"

_LEGACY_PATTERN = re.compile(
    r"\n\n<!-- sync-metadata[\s\S]*?-->\s*\Z"
)
_LEGACY_FENCED = re.compile(
    r"\n\n<!-- sync-metadata -->\n---\n([\s\S]*?)\n---\s*\Z"
)
_LEGACY_FENCE = re.compile(r"---\n([\s\S]*?)\n---")

_VALUE_ESCAPES = {
    "\\": "\\\\",
    "(": "\\(",
    ")": "\\)",
    "\n": "\\n",
    "\r": "\\r",
}
_KEY_ESCAPES = {**_VALUE_ESCAPES, ":": "\\:"}
_UNESCAPES = {"n": "\n", "r": "\r"}


class ExtractedMetadata(NamedTuple):
    """Result of splitting a document into body and metadata.

    Attributes:
        metadata: The decoded key/value map (empty when absent).
        body: Content with the trailer removed.
        legacy: ``True`` when the trailer used the old HTML-comment format.
    """

    metadata: dict[str, str]
    body: str
    legacy: bool = False


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------


def _escape(text: str, table: Mapping[str, str]) -> str:
    return "".join(table.get(ch, ch) for ch in text)


def _parse_entry(line: str) -> tuple[str, str]:
    """Decode one ``[//]: # (key: value)`` line.

    Raises:
        MalformedMetadataError: If the line is not a well-formed entry.
    """
    if not (
        line.startswith(_ENTRY_PREFIX)
        and line.endswith(_ENTRY_SUFFIX)
        and len(line) > len(_ENTRY_PREFIX)
    ):
        raise MalformedMetadataError(f"Not a metadata entry: {line!r}")

    inner = line[len(_ENTRY_PREFIX) : -len(_ENTRY_SUFFIX)]
    key_chars: list[str] = []
    value_chars: list[str] = []
    target = key_chars
    in_key = True
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch == "\\":
            if i + 1 >= len(inner):
                raise MalformedMetadataError(
                    f"Dangling escape in metadata entry: {line!r}"
                )
            nxt = inner[i + 1]
            target.append(_UNESCAPES.get(nxt, nxt))
            i += 2
            continue
        if in_key and ch == ":":
            if not inner.startswith(" ", i + 1):
                raise MalformedMetadataError(
                    f"Missing separator in metadata entry: {line!r}"
                )
            in_key = False
            target = value_chars
            i += 2
            continue
        target.append(ch)
        i += 1

    if in_key:
        raise MalformedMetadataError(
            f"Missing separator in metadata entry: {line!r}"
        )
    return "".join(key_chars), "".join(value_chars)


def _parse_legacy(text: str) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for line in text.split("\n"):
        key, sep, value = line.partition(":")
        if sep and key.strip():
            metadata[key.strip()] = value.strip()
    return metadata


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract(content: str) -> ExtractedMetadata:
    """Split *content* into metadata and body.

    A start marker whose block does not end with the end marker is treated
    as absent metadata, and unparsable lines inside a block are skipped.
    """
    if not content:
        return ExtractedMetadata({}, "")

    idx = content.rfind(SEPARATOR)
    if idx != -1:
        lines = content[idx + len(SEPARATOR) :].rstrip("\n").split("\n")
        if lines and lines[-1] == END_LINE:
            metadata: dict[str, str] = {}
            for line in lines[:-1]:
                try:
                    key, value = _parse_entry(line)
                except MalformedMetadataError as exc:
                    logger.debug("Ignoring metadata line: %s", exc)
                    continue
                metadata[key] = value
            return ExtractedMetadata(metadata, content[:idx])

    match = _LEGACY_FENCED.search(content)
    if match:
        return ExtractedMetadata(
            _parse_legacy(match.group(1)), content[: match.start()], True
        )

    match = _LEGACY_PATTERN.search(content)
    if match:
        fence = _LEGACY_FENCE.search(match.group(0))
        metadata = _parse_legacy(fence.group(1)) if fence else {}
        return ExtractedMetadata(metadata, content[: match.start()], True)

    return ExtractedMetadata({}, content)


def embed(body: str, metadata: Mapping[str, str]) -> str:
    """Append a current-format trailer for *metadata* to *body*.

    An empty map yields *body* unchanged.
    """
    if not metadata:
        return body
    lines = [START_LINE]
    for key, value in metadata.items():
        lines.append(
            f"{_ENTRY_PREFIX}{_escape(str(key), _KEY_ESCAPES)}: "
            f"{_escape(str(value), _VALUE_ESCAPES)}{_ENTRY_SUFFIX}"
        )
    lines.append(END_LINE)
    return body + "\n\n" + "\n".join(lines)


def update(content: str, changes: Mapping[str, str | None]) -> str:
    """Merge *changes* into the metadata of *content* and rewrite the trailer.

    A ``None`` value removes the key.  The result always uses the current
    trailer format, so a legacy trailer is rewritten without touching the
    visible body.
    """
    extracted = extract(content)
    merged = dict(extracted.metadata)
    for key, value in changes.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return embed(extracted.body, merged)


def strip(content: str) -> str:
    """Return *content* without its metadata trailer."""
    return extract(content).body
