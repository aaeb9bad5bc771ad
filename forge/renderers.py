"""Body renderers for Forge content files.

Each renderer converts one source format into HTML:

- MarkdownRenderer: Markdown to HTML via mistune, with Pygments highlighting.
- HTMLRenderer: Passes HTML bodies through unchanged.
- RendererRegistry: Picks the renderer for a file by extension.
"""

from __future__ import annotations

from pathlib import Path

import mistune

MARKDOWN_PLUGINS = ["strikethrough", "table", "task_lists", "url"]


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune HTML renderer with Pygments syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'javascript').

        Returns:
            HTML string with highlighted code.
        """
        if info:
            lang = info.split()[0]
            try:
                from pygments import highlight
                from pygments.formatters import HtmlFormatter
                from pygments.lexers import get_lexer_by_name
                from pygments.util import ClassNotFound

                lexer = get_lexer_by_name(lang, stripall=True)
            except (ImportError, ClassNotFound):
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info.split()[0]}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    source_type = "markdown"

    def can_render(self, path: Path) -> bool:
        return path.suffix.lower() == ".md"

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Rendered HTML.
        """
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=MARKDOWN_PLUGINS
        )
        return markdown(content)


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return path.suffix.lower() == ".html"

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for body renderers, checked in registration order."""

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Get the appropriate renderer for a file.

        Args:
            path: Path to the source file.

        Returns:
            The first renderer that can handle the file, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None

    def supports(self, path: Path) -> bool:
        return self.get_renderer(path) is not None


# Default renderer registry instance
default_renderer_registry = RendererRegistry()