"""Minifiers for HTML, CSS and JavaScript output.

Each ``minify_*`` function is a pure ``text -> text`` transform that returns
its input unchanged when the library fails on the input. ``Minifier``
applies them according to the site configuration.
"""

from __future__ import annotations

import logging

import minify_html as html_minifier
from rcssmin import cssmin
from rjsmin import jsmin

from .config import SiteConfig

logger = logging.getLogger(__name__)


def minify_html(text: str) -> str:
    try:
        return html_minifier.minify(text, keep_closing_tags=True)
    except Exception as exc:
        logger.warning("HTML minification failed: %s", exc)
        return text


def minify_css(text: str) -> str:
    try:
        return cssmin(text)
    except Exception as exc:
        logger.warning("CSS minification failed: %s", exc)
        return text


def minify_js(text: str) -> str:
    try:
        return jsmin(text)
    except Exception as exc:
        logger.warning("JavaScript minification failed: %s", exc)
        return text


class Minifier:
    """Applies the configured minifiers.

    A type is minified only when ``minify_output`` is on and its own toggle
    under ``minify`` is on.
    """

    def __init__(self, config: SiteConfig):
        enabled = config.minify_output
        self.html_enabled = enabled and config.minify.html
        self.css_enabled = enabled and config.minify.css
        self.js_enabled = enabled and config.minify.js

    def html(self, text: str) -> str:
        return minify_html(text) if self.html_enabled else text

    def css(self, text: str) -> str:
        return minify_css(text) if self.css_enabled else text

    def js(self, text: str) -> str:
        return minify_js(text) if self.js_enabled else text
