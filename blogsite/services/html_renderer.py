"""
blogsite/services/html_renderer.py — Content blocks → editor HTML

Used to seed the admin editor from stored content. Output is the markup
html_to_blocks reads back: lists nest as <ul>/<ol> of <li><p>, quotes as
<blockquote><p>, images carry their asset ref in data attributes, tables are
padded so every row has the table's full column count.
"""
from __future__ import annotations

import json
from html import escape
from typing import Any, Callable, Optional

from blogsite.config import get_settings
from blogsite.clients.sanity_client import image_url_for_ref
from blogsite.core.logging import log_conversion_issue
from blogsite.models import (
    BlockStyle,
    Decorator,
    EditorContent,
    EditorContentStatus,
    ImageBlock,
    ListType,
    TableBlock,
    TextBlock,
)
from blogsite.services.block_builder import DECORATOR_ORDER
from blogsite.utils.blocks import parse_block

ImageUrlBuilder = Callable[[str], Optional[str]]

_DECORATOR_TAGS = {
    Decorator.STRONG.value: "strong",
    Decorator.EM.value: "em",
    Decorator.UNDERLINE.value: "u",
    Decorator.STRIKE.value: "s",
    Decorator.CODE.value: "code",
}

_LIST_TAGS = {
    ListType.BULLET.value: "ul",
    ListType.NUMBER.value: "ol",
}


def blocks_to_html(raw_blocks: Any, image_url: Optional[ImageUrlBuilder] = None) -> str:
    """
    Render a stored block array as editor HTML.

    Items that are not block-shaped are skipped; a non-list renders as "".
    Use render_editor_content() when the caller must tell an empty document
    from one that failed to convert.
    """
    if not isinstance(raw_blocks, list):
        return ""
    blocks = [b for b in (_coerce(raw) for raw in raw_blocks) if b is not None]
    return _render_blocks(blocks, image_url or _default_image_url)


def render_editor_content(raw_blocks: Any) -> EditorContent:
    """Render stored content for the editor with an explicit ok/empty/failed status."""
    if raw_blocks is None or raw_blocks == []:
        return EditorContent(html="", status=EditorContentStatus.EMPTY)

    if not isinstance(raw_blocks, list):
        log_conversion_issue("editor_render", "content is not a block array",
                             {"type": type(raw_blocks).__name__})
        return EditorContent(
            html="",
            status=EditorContentStatus.FAILED,
            message="Stored content is not a block array",
        )

    blocks = [_coerce(raw) for raw in raw_blocks]
    parsed = [b for b in blocks if b is not None]
    rejected = len(blocks) - len(parsed)

    if not parsed:
        log_conversion_issue("editor_render", "no readable blocks", {"rejected": rejected})
        return EditorContent(
            html="",
            status=EditorContentStatus.FAILED,
            message="Failed to load content: no readable blocks",
        )

    html = _render_blocks(parsed, _default_image_url)
    message = None
    if rejected:
        log_conversion_issue("editor_render", "blocks skipped", {"rejected": rejected})
        message = f"{rejected} block(s) could not be displayed"
    return EditorContent(html=html, status=EditorContentStatus.OK, message=message)


def _coerce(raw: Any) -> Optional[Any]:
    if isinstance(raw, (TextBlock, ImageBlock, TableBlock)):
        return raw
    return parse_block(raw)


def _default_image_url(ref: str) -> Optional[str]:
    return image_url_for_ref(ref, width=get_settings().editor_image_width)


# ──────────────────────────────────────────────────────────────────────────────
# Block rendering
# ──────────────────────────────────────────────────────────────────────────────

def _render_blocks(blocks: list[Any], image_url: ImageUrlBuilder) -> str:
    out: list[str] = []
    open_lists: list[str] = []

    def close_list() -> None:
        out.append(f"</li></{open_lists.pop()}>")

    for block in blocks:
        if isinstance(block, TextBlock) and block.list_item:
            tag = _LIST_TAGS.get(block.list_item, "ul")
            level = block.level or 1
            while len(open_lists) > level:
                close_list()
            if len(open_lists) == level and open_lists[-1] != tag:
                close_list()
            if len(open_lists) == level:
                out.append("</li><li>")
            while len(open_lists) < level:
                out.append(f"<{tag}><li>")
                open_lists.append(tag)
            out.append(f"<p>{_render_inline(block)}</p>")
            continue

        while open_lists:
            close_list()

        if isinstance(block, TextBlock):
            out.append(_render_text_block(block))
        elif isinstance(block, ImageBlock):
            out.append(_render_image(block, image_url))
        elif isinstance(block, TableBlock):
            out.append(_render_table(block))

    while open_lists:
        close_list()
    return "".join(out)


def _render_text_block(block: TextBlock) -> str:
    indent = f' data-indent-level="{block.indent_level}"' if block.indent_level else ""
    style = block.style or BlockStyle.NORMAL.value

    if style == BlockStyle.BLOCKQUOTE.value:
        return f"<blockquote><p{indent}>{_render_inline(block)}</p></blockquote>"
    if style.startswith("h") and style[1:].isdigit():
        return f"<{style}{indent}>{_render_inline(block)}</{style}>"
    if _is_code_block(block):
        return f"<pre><code>{escape(block.children[0].text, quote=False)}</code></pre>"
    return f"<p{indent}>{_render_inline(block)}</p>"


def _is_code_block(block: TextBlock) -> bool:
    return (
        len(block.children) == 1
        and block.children[0].marks == [Decorator.CODE.value]
        and _keeps_layout(block.children[0].text)
    )


def _keeps_layout(text: str) -> bool:
    # Line breaks and edge whitespace only survive inside <pre>.
    return "\n" in text or text != text.strip()


def _render_inline(block: TextBlock) -> str:
    parts = []
    for span in block.children:
        inner = escape(span.text, quote=False).replace("\n", "<br>")
        active = set(span.marks)
        # Innermost first so the final nesting is link > strong > em > u > s > code.
        for decorator in reversed(DECORATOR_ORDER):
            if decorator in active:
                tag = _DECORATOR_TAGS[decorator]
                inner = f"<{tag}>{inner}</{tag}>"
        for mark in span.marks:
            href = block.link_href(mark)
            if href:
                inner = f'<a href="{escape(href)}">{inner}</a>'
                break
        parts.append(inner)
    return "".join(parts)


def _render_image(block: ImageBlock, image_url: ImageUrlBuilder) -> str:
    src = image_url(block.asset_ref) or ""
    payload = {"_type": "image", "asset": {"_type": "reference", "_ref": block.asset_ref}}
    if block.alt:
        payload["alt"] = block.alt
    return (
        f'<img src="{escape(src)}" alt="{escape(block.alt or "")}" '
        f'data-sanity-ref="{escape(block.asset_ref)}" '
        f'data-sanity-image="{escape(json.dumps(payload))}">'
    )


def _render_table(block: TableBlock) -> str:
    width = block.column_count
    rows = []
    for row in block.rows:
        cells = []
        for cell in row.cells:
            tag = "th" if cell.is_header else "td"
            content = "".join(_render_text_block(inner) for inner in cell.content)
            cells.append(f"<{tag}>{content}</{tag}>")
        cells.extend("<td></td>" for _ in range(width - len(row.cells)))
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return f"<table><tbody>{''.join(rows)}</tbody></table>"
