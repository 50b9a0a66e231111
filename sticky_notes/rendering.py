"""Markdown to safe HTML.

Raw HTML in the source is escaped rather than passed through, and ``href`` or
``src`` attributes with a script-capable scheme (``javascript:``,
``vbscript:``, ``data:``) are dropped from the output.
"""

from __future__ import annotations

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:")


def is_unsafe_url(url: str) -> bool:
    # browsers ignore whitespace and control characters inside the scheme
    cleaned = "".join(ch for ch in url if ord(ch) > 32).lower()
    return cleaned.startswith(_UNSAFE_SCHEMES)


class _StripUnsafeUrls(Treeprocessor):
    def run(self, root):
        for el in root.iter():
            for attr in ("href", "src"):
                value = el.get(attr)
                if value is not None and is_unsafe_url(value):
                    del el.attrib[attr]


class EscapeHtmlExtension(Extension):
    """Treat raw HTML as text and strip unsafe link targets."""

    def extendMarkdown(self, md):
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        # after the inline processor has built the <a>/<img> elements
        md.treeprocessors.register(_StripUnsafeUrls(md), "strip_unsafe_urls", 0)


_md = markdown.Markdown(
    extensions=["tables", "fenced_code", "nl2br", "sane_lists", EscapeHtmlExtension()],
    output_format="html",
)


def render(markdown_text: str) -> str:
    return _md.reset().convert(markdown_text or "")
