"""Template rendering engine for Forge.

This module uses Jinja2 to render a template string against a context
document. The engine is configured once and holds no per-render state:
``render(template_text, context)`` depends only on its arguments.

Missing variables do not fail a render outright. Undefined lookups carry the
dotted path they were reached through; when one is used, the engine injects a
null placeholder at that path into a private copy of the context and retries,
up to ``MAX_RENDER_ATTEMPTS`` times.

Key classes and functions:
- TemplateEngine: Renders template text with the recovery loop.
- serialize_page: Converts a PageInfo into the ``page`` namespace.
- serialize_collection: Converts a list of pages for ``collections``.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateSyntaxError,
    UndefinedError,
)
from jinja2.utils import missing

from .content import PageInfo
from .errors import RenderError

logger = logging.getLogger(__name__)

MAX_RENDER_ATTEMPTS = 3

_DATE_LIKE_RE = re.compile(r"\d{2,4}[-/]\d{1,2}[-/]\d{1,4}")
_NUMBER_CHARS = frozenset("0123456789.-")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%m/%d/%Y")
_DATE_TOKEN_RE = re.compile(r"yyyy|yy|MMMM|MMM|MM|M|dd|d")
_DATE_PRESETS = {"long": "MMMM d, yyyy", "short": "MMM d, yyyy", "iso": "yyyy-MM-dd"}


class MissingVariableError(UndefinedError):
    """A template used a variable path that is absent from the context.

    Attributes:
        path: The dotted path as a tuple of keys and list indexes.
        placeholder: Value to inject at ``path`` before retrying.
    """

    def __init__(self, path: tuple, message: str | None = None, placeholder: Any = None):
        self.path = path
        self.placeholder = placeholder
        super().__init__(message or f"'{dotted(path)}' is undefined")


def dotted(path: Iterable) -> str:
    return ".".join(str(part) for part in path)


class _TrackedDict(dict):
    """A context mapping that knows its own path from the context root."""

    __slots__ = ("_forge_path",)


class _TrackedList(list):
    __slots__ = ("_forge_path",)


def _track(value: Any, path: tuple) -> Any:
    """Copy the containers of a context document, recording their paths."""
    if isinstance(value, dict):
        tracked = _TrackedDict((k, _track(v, path + (k,))) for k, v in value.items())
        tracked._forge_path = path
        return tracked
    if isinstance(value, (list, tuple)):
        tracked_list = _TrackedList(_track(v, path + (i,)) for i, v in enumerate(value))
        tracked_list._forge_path = path
        return tracked_list
    return value


def _undefined_path(obj: Any, name: Any) -> tuple | None:
    if name is None:
        return None
    if obj is missing:
        return (name,)
    if isinstance(obj, _PathUndefined):
        return None if obj._path is None else obj._path + (name,)
    base = getattr(obj, "_forge_path", None) if isinstance(obj, (_TrackedDict, _TrackedList)) else None
    return None if base is None else base + (name,)


class _PathUndefined(StrictUndefined):
    """Strict undefined value that remembers the path it was looked up by.

    Attribute and item access on it chain into a longer path instead of
    failing, so ``page.meta.author`` reports the full path when rendered.
    """

    __slots__ = ("_path",)

    def __init__(self, hint=None, obj=missing, name=None, exc=UndefinedError):
        super().__init__(hint, obj, name, exc)
        self._path = _undefined_path(obj, name)
        if self._path is not None:
            self._undefined_exception = functools.partial(MissingVariableError, self._path)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name == "jinja_pass_arg":
            raise AttributeError(name)
        return type(self)(obj=self, name=name)

    def __getitem__(self, key: Any) -> Any:
        return type(self)(obj=self, name=key)

    def __iter__(self):
        if self._path is None:
            return super().__iter__()
        raise MissingVariableError(self._path, self._undefined_message, placeholder=[])


def _inject(node: Any, path: tuple, placeholder: Any) -> bool:
    """Insert ``placeholder`` at ``path`` inside a tracked context.

    A list index in the path applies the rest of the path to every mapping
    in that list, so one missing optional field is filled for all items of a
    collection at once.

    Returns:
        True if the context changed.
    """
    head, rest = path[0], path[1:]
    if isinstance(node, list):
        if not rest or not isinstance(head, int):
            return False
        changed = False
        for item in node:
            if isinstance(item, dict):
                changed = _inject(item, rest, placeholder) or changed
        return changed
    if not isinstance(node, dict):
        return False
    if not rest:
        if head in node and node[head] is not None:
            return False
        node[head] = _track(placeholder, node._forge_path + (head,))
        return True
    child = node.get(head)
    if not isinstance(child, (dict, list)):
        child = _track({}, node._forge_path + (head,))
        node[head] = child
    return _inject(child, rest, placeholder)


def _finalize(value: Any) -> Any:
    return "" if value is None else value


def coerce_scalar(value: str) -> Any:
    """Apply the light type coercion used for front matter fields.

    ``"true"``/``"false"`` become booleans, date-like strings stay strings,
    and strings of digits with at most one ``.`` and one leading ``-`` become
    int or float. Everything else is returned unchanged.
    """
    if value in ("true", "false"):
        return value == "true"
    if _DATE_LIKE_RE.search(value):
        return value
    if not value or not set(value) <= _NUMBER_CHARS:
        return value
    if value.count(".") > 1 or value.count("-") > 1:
        return value
    if "-" in value and not value.startswith("-"):
        return value
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def serialize_page(page: PageInfo) -> dict[str, Any]:
    """Serialize a page for the ``page`` template namespace."""
    data: dict[str, Any] = {}
    frontmatter = page.frontmatter
    for key, values in frontmatter.arrays.items():
        if key != "tags":
            data[key] = list(values)
    for key, value in frontmatter.data.items():
        if key == "tags":
            continue
        data[key] = coerce_scalar(value)
    if frontmatter.tags:
        data["tags"] = list(frontmatter.tags)
    data["url"] = page.url
    data["content_type"] = page.content_type
    data["html_content"] = page.html_content
    return data


def serialize_collection(pages: Iterable[PageInfo]) -> list[dict[str, Any]]:
    return [serialize_page(page) for page in pages]


def _parse_date(value: str) -> datetime | None:
    token = value.strip().split("T")[0].split(" ")[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(token, fmt)
        except ValueError:
            continue
    return None


def format_date(value: Any, fmt: str = "long") -> str:
    """Format a date string with ``yyyy``/``MM``/``d`` style tokens.

    ``fmt`` may be one of the presets ``long``, ``short`` and ``iso``.
    Unparseable input is returned unchanged.
    """
    if value is None:
        return ""
    text = str(value)
    parsed = _parse_date(text)
    if parsed is None:
        return text
    pattern = _DATE_PRESETS.get(fmt, fmt)

    def repl(match: re.Match) -> str:
        token = match.group(0)
        if token == "yyyy":
            return f"{parsed.year:04d}"
        if token == "yy":
            return f"{parsed.year % 100:02d}"
        if token == "MMMM":
            return parsed.strftime("%B")
        if token == "MMM":
            return parsed.strftime("%b")
        if token == "MM":
            return f"{parsed.month:02d}"
        if token == "M":
            return str(parsed.month)
        if token == "dd":
            return f"{parsed.day:02d}"
        return str(parsed.day)

    return _DATE_TOKEN_RE.sub(repl, pattern)


def truncate_text(value: Any, length: int) -> str:
    text = "" if value is None else str(value)
    return text[:length] + "..." if len(text) > length else text


def substring(value: Any, start: int, length: int) -> str:
    text = "" if value is None else str(value)
    if start < 0 or start >= len(text):
        return ""
    return text[start : start + length]


def slice_items(items: Any, start: int, end: int) -> list:
    if not isinstance(items, list):
        return []
    return list(items[max(start, 0) : min(end, len(items))])


def limit_items(items: Any, count: int) -> list:
    if not isinstance(items, list):
        return []
    return list(items[: max(count, 0)])


def prefix_separator(value: Any, sep: str) -> str:
    return f"{sep}{value}" if value else ""


def suffix_separator(value: Any, sep: str) -> str:
    return f"{value}{sep}" if value else ""


def exists(value: Any) -> bool:
    return value is not None and not isinstance(value, StrictUndefined)


def format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if isinstance(exc, UndefinedError):
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    return f"{error_type}: {error_msg}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        env: Jinja2 environment, configured once.
        max_attempts: Bound on render attempts per call.
    """

    def __init__(self, templates_dir: Path | None = None, max_attempts: int = MAX_RENDER_ATTEMPTS):
        """Initialize the template engine.

        Args:
            templates_dir: Directory used to resolve ``{% include %}`` and
                ``{% extends %}``; template text itself is always passed in.
            max_attempts: Render attempts before a missing variable is fatal.
        """
        loaders = [FileSystemLoader(str(templates_dir))] if templates_dir else []
        self.env = Environment(
            loader=ChoiceLoader([*loaders, DictLoader({})]),
            undefined=_PathUndefined,
            autoescape=False,
            finalize=_finalize,
            keep_trailing_newline=True,
        )
        self.max_attempts = max_attempts
        self._install_helpers()

    def _install_helpers(self) -> None:
        """Install helper functions as globals and, where safe, filters."""
        helpers = {
            "exists": exists,
            "date": format_date,
            "truncate": truncate_text,
            "substring": substring,
            "slice": slice_items,
            "limit": limit_items,
            "prefix_separator": prefix_separator,
            "suffix_separator": suffix_separator,
        }
        self.env.globals.update(helpers)
        # truncate and slice keep Jinja's builtin filter semantics.
        for name in ("date", "substring", "limit", "prefix_separator", "suffix_separator"):
            self.env.filters[name] = helpers[name]
        self.env.tests["exists"] = exists

    def render(self, template_text: str, context: dict[str, Any], url: str | None = None) -> str:
        """Render template text against a context document.

        Args:
            template_text: Jinja2 template source.
            context: Context document; never modified.
            url: Page URL used in error messages.

        Returns:
            Rendered text.

        Raises:
            RenderError: On syntax errors, non-recoverable failures, or when
                recovery does not succeed within ``max_attempts`` renders.
        """
        try:
            template = self.env.from_string(template_text)
        except TemplateSyntaxError as exc:
            raise RenderError(format_error_message(exc), url, original_error=exc) from exc

        working = _track(context, ())
        last_error: MissingVariableError | None = None
        for _attempt in range(self.max_attempts):
            try:
                return template.render(working)
            except MissingVariableError as exc:
                last_error = exc
                logger.warning(
                    "Missing variable '%s'%s; adding null value and retrying",
                    dotted(exc.path),
                    f" in {url}" if url else "",
                )
                if not _inject(working, exc.path, exc.placeholder):
                    raise RenderError(
                        f"Template render error: {format_error_message(exc)}",
                        url,
                        original_error=exc,
                    ) from exc
            except Exception as exc:
                raise RenderError(
                    f"Template render error: {format_error_message(exc)}",
                    url,
                    original_error=exc,
                ) from exc

        raise RenderError(
            "Template render failed after multiple recovery attempts",
            url,
            original_error=last_error,
        )
