"""Forge static site generator.

Forge discovers Markdown and HTML content with YAML front matter, renders it
through Jinja2 templates and either serves a live-reloading development
preview or exports a static output tree.

The main entry point is the CLI module, which provides the ``dev``, ``build``
and ``serve`` commands.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
