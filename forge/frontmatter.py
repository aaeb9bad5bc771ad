"""Front matter splitting for Forge content files.

A content file may start with a YAML block delimited by ``---`` lines::

    ---
    title: Hello
    date: 2024-01-01
    tags: [python, web]
    ---
    Body text...

The block is parsed with PyYAML's base loader so every scalar keeps the exact
text the author wrote; type coercion happens later, when a page is handed to
templates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import FrontMatterError

DELIMITER = "---"
_CLOSING_RE = re.compile(r"^---[ \t]*\r?(?:\n|\Z)", re.MULTILINE)


@dataclass
class FrontMatter:
    """Parsed metadata block.

    Attributes:
        data: Scalar fields, raw string values.
        arrays: Sequence fields, lists of raw string values.
        tags: Mirror of the ``tags`` array field, if present.
    """

    data: dict[str, str] = field(default_factory=dict)
    arrays: dict[str, list[str]] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def get(self, key: str, default: str = "") -> str:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    def is_empty(self) -> bool:
        return not self.data and not self.arrays

    def keys(self) -> set[str]:
        return set(self.data) | set(self.arrays)

    def to_dict(self) -> dict[str, str | list[str]]:
        merged: dict[str, str | list[str]] = dict(self.data)
        merged.update({k: list(v) for k, v in self.arrays.items()})
        return merged


def parse(text: str, source: Path | None = None) -> tuple[FrontMatter, str]:
    """Split a leading front matter block from the body.

    Args:
        text: Raw file content.
        source: Path used in error messages, if known.

    Returns:
        Tuple of (FrontMatter, body). Without a complete ``---`` block the
        FrontMatter is empty and the body is the unmodified input.

    Raises:
        FrontMatterError: If the block is not a valid key/value document.
    """
    if not text.startswith(DELIMITER):
        return FrontMatter(), text

    first_newline = text.find("\n")
    if first_newline == -1:
        return FrontMatter(), text
    closing = _CLOSING_RE.search(text, first_newline + 1)
    if closing is None:
        return FrontMatter(), text

    block = text[len(DELIMITER) : closing.start()]
    body = text[closing.end() :]
    return _parse_block(block, source), body


def _parse_block(block: str, source: Path | None) -> FrontMatter:
    try:
        document = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"YAML parsing error: {exc}", source, exc) from exc

    frontmatter = FrontMatter()
    if document is None:
        return frontmatter
    if not isinstance(document, dict):
        raise FrontMatterError("Front matter must be a mapping of fields", source)

    for key, value in document.items():
        key = str(key)
        if isinstance(value, list):
            items = []
            for item in value:
                if isinstance(item, (dict, list)):
                    raise FrontMatterError(
                        f"Field '{key}' must be a list of plain values", source
                    )
                items.append(item)
            frontmatter.arrays[key] = items
            if key == "tags":
                frontmatter.tags = list(items)
        elif isinstance(value, dict):
            raise FrontMatterError(f"Field '{key}' cannot be a nested mapping", source)
        else:
            frontmatter.data[key] = "" if value is None else value
    return frontmatter


def dump(frontmatter: FrontMatter, body: str = "") -> str:
    """Serialize a FrontMatter back into a ``---`` block followed by ``body``."""
    if frontmatter.is_empty():
        return body
    block = yaml.safe_dump(
        frontmatter.to_dict(),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n{body}"
