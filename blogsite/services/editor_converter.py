"""
blogsite/services/editor_converter.py — Rich-text editor documents → content blocks

The admin editor (Tiptap) sends either its JSON document or its HTML. HTML is
first lifted into the same JSON node shape with BeautifulSoup, so there is a
single walker (tiptap_to_blocks) that produces blocks.

Node types understood: paragraph, heading, blockquote, bulletList,
orderedList, listItem, codeBlock, image, table/tableRow/tableCell/tableHeader,
hardBreak, horizontalRule. Marks: bold, italic, code, underline, strike, link.
Paragraphs and headings carry the editor's `indentLevel` attribute.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag
from loguru import logger

from blogsite.clients.sanity_client import resolve_sanity_asset
from blogsite.core.errors import ConversionError
from blogsite.models import (
    BlockStyle,
    Decorator,
    ListType,
    TableBlock,
    TableCell,
    TableRow,
)
from blogsite.services.block_builder import BlockBuilder

AssetResolver = Callable[[str], Optional[str]]

_TIPTAP_MARKS = {
    "bold": Decorator.STRONG.value,
    "strong": Decorator.STRONG.value,
    "italic": Decorator.EM.value,
    "em": Decorator.EM.value,
    "code": Decorator.CODE.value,
    "underline": Decorator.UNDERLINE.value,
    "strike": Decorator.STRIKE.value,
}

_LIST_TYPES = {
    "bulletList": ListType.BULLET,
    "orderedList": ListType.NUMBER,
}


# ──────────────────────────────────────────────────────────────────────────────
# Tiptap JSON → blocks
# ──────────────────────────────────────────────────────────────────────────────

def tiptap_to_blocks(
    doc: Any,
    resolve_asset: Optional[AssetResolver] = None,
    diagnostics: Optional[list[str]] = None,
    strip: bool = False,
) -> list[Any]:
    """
    Convert a Tiptap JSON document into content blocks.

    Empty paragraphs are kept (as a block with one empty span) so the editor's
    vertical spacing survives a save. Raises ConversionError when `doc` is not
    a JSON object.
    """
    if not isinstance(doc, dict):
        raise ConversionError("Editor document must be a JSON object")
    content = doc.get("content")
    if not isinstance(content, list):
        return []

    walker = _TiptapWalker("editor", resolve_asset or resolve_sanity_asset, diagnostics, strip)
    try:
        walker.nodes(content)
    except RecursionError as exc:
        logger.error("Editor document nested too deeply to convert")
        raise ConversionError("Editor document is nested too deeply") from exc
    return walker.builder.finish()


class _TiptapWalker:
    def __init__(
        self,
        source: str,
        resolve_asset: AssetResolver,
        diagnostics: Optional[list[str]],
        strip: bool,
        keep_empty: bool = True,
    ) -> None:
        self.builder = BlockBuilder(source, diagnostics)
        self.resolve_asset = resolve_asset
        self.strip = strip
        self.keep_empty = keep_empty

    def nodes(
        self,
        nodes: list[Any],
        style: str = BlockStyle.NORMAL.value,
        list_type: Optional[ListType] = None,
        level: int = 0,
    ) -> None:
        for node in nodes:
            if isinstance(node, dict):
                self.node(node, style, list_type, level)

    def node(
        self,
        node: dict[str, Any],
        style: str = BlockStyle.NORMAL.value,
        list_type: Optional[ListType] = None,
        level: int = 0,
    ) -> None:
        kind = node.get("type")
        attrs = node.get("attrs") or {}
        b = self.builder

        if kind in ("paragraph", "heading"):
            if kind == "heading":
                style = BlockStyle.heading(_as_int(attrs.get("level"), 1)).value
            b.start_text(
                style=style,
                list_item=list_type,
                level=level if list_type else None,
                indent_level=_as_int(attrs.get("indentLevel"), None),
            )
            self.inline(node.get("content") or [])
            b.end_text(keep_empty=self.keep_empty, strip=self.strip)
        elif kind == "blockquote":
            self.nodes(node.get("content") or [], BlockStyle.BLOCKQUOTE.value)
        elif kind in _LIST_TYPES:
            for item in node.get("content") or []:
                if isinstance(item, dict):
                    self.nodes(item.get("content") or [], style, _LIST_TYPES[kind], level + 1)
        elif kind == "listItem":
            self.nodes(node.get("content") or [], style, list_type, level)
        elif kind == "codeBlock":
            b.start_text(style=style)
            b.add_text(_node_text(node), [Decorator.CODE.value])
            b.end_text(strip=False)
        elif kind == "image":
            ref, alt = self.image_ref(attrs)
            b.add_image(ref, alt, context={"src": str(attrs.get("src") or "")[:200]})
        elif kind == "table":
            self.table(node)
        elif kind == "horizontalRule":
            b.drop("horizontal rule has no block equivalent")
        elif isinstance(node.get("content"), list):
            self.nodes(node["content"], style, list_type, level)
        else:
            b.drop(f"unsupported editor node: {kind}")

    def table(self, node: dict[str, Any]) -> None:
        rows = []
        for row in node.get("content") or []:
            if not isinstance(row, dict) or row.get("type") != "tableRow":
                continue
            cells = []
            for cell in row.get("content") or []:
                if not isinstance(cell, dict):
                    continue
                nested = _TiptapWalker(
                    self.builder.source, self.resolve_asset, self.builder.diagnostics,
                    self.strip, keep_empty=False,
                )
                nested.nodes(cell.get("content") or [])
                is_header = cell.get("type") == "tableHeader" or bool(
                    (cell.get("attrs") or {}).get("isHeader")
                )
                cells.append(TableCell(content=nested.builder.text_blocks(), is_header=is_header))
            rows.append(TableRow(cells=cells))
        self.builder.add_table(TableBlock(rows=rows))

    def inline(self, nodes: list[Any]) -> None:
        b = self.builder
        for node in nodes:
            if not isinstance(node, dict):
                continue
            kind = node.get("type")
            if kind == "text":
                decorators, href = _marks(node.get("marks") or [])
                b.add_text(node.get("text") or "", decorators, href)
            elif kind == "hardBreak":
                decorators, href = _marks(node.get("marks") or [])
                b.add_text("\n", decorators, href)
            elif kind == "image":
                ref, alt = self.image_ref(node.get("attrs") or {})
                b.add_image(ref, alt, context={"src": str((node.get("attrs") or {}).get("src") or "")[:200]})
            elif isinstance(node.get("content"), list):
                self.inline(node["content"])

    def image_ref(self, attrs: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
        """Asset ref from data-sanity-image JSON, then data-sanity-ref, then src."""
        alt = attrs.get("alt") or None
        raw_image = attrs.get("data-sanity-image")
        if raw_image:
            try:
                image = json.loads(raw_image) if isinstance(raw_image, str) else raw_image
                ref = image["asset"]["_ref"]
                if ref:
                    return ref, image.get("alt") or alt
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(f"Unreadable data-sanity-image attribute: {exc}")
        if attrs.get("data-sanity-ref"):
            return attrs["data-sanity-ref"], alt
        src = attrs.get("src")
        return (self.resolve_asset(src) if src else None), alt


def _marks(marks: list[Any]) -> tuple[list[str], Optional[str]]:
    decorators: list[str] = []
    href = None
    for mark in marks:
        if not isinstance(mark, dict):
            continue
        kind = mark.get("type")
        if kind in _TIPTAP_MARKS:
            decorators.append(_TIPTAP_MARKS[kind])
        elif kind == "link":
            href = (mark.get("attrs") or {}).get("href")
    return decorators, href


def _node_text(node: dict[str, Any]) -> str:
    if node.get("type") == "text":
        return node.get("text") or ""
    if node.get("type") == "hardBreak":
        return "\n"
    return "".join(_node_text(child) for child in node.get("content") or [] if isinstance(child, dict))


def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ──────────────────────────────────────────────────────────────────────────────
# HTML → Tiptap JSON
# ──────────────────────────────────────────────────────────────────────────────

_WHITESPACE_RE = re.compile(r"\s+")
_HEADING_TAGS = {f"h{n}": n for n in range(1, 7)}
_CONTAINER_TAGS = {
    "html", "body", "div", "section", "article", "main", "header", "footer",
    "figure", "figcaption", "li", "thead", "tbody", "tfoot",
}
_SKIPPED_TAGS = {"script", "style", "head", "title", "meta", "link", "template", "noscript"}
_BLOCK_TAGS = {"p", "blockquote", "ul", "ol", "pre", "table", "hr", "img"} | set(_HEADING_TAGS) | _CONTAINER_TAGS

_HTML_MARKS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "code": "code",
    "u": "underline",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
}


def html_to_tiptap(html: str) -> dict[str, Any]:
    """Lift editor HTML into a Tiptap JSON document."""
    soup = BeautifulSoup(html or "", "html.parser")
    return {"type": "doc", "content": _block_nodes(soup)}


def html_to_blocks(
    html: str,
    resolve_asset: Optional[AssetResolver] = None,
    diagnostics: Optional[list[str]] = None,
) -> list[Any]:
    """Convert editor HTML to content blocks. Whitespace collapses outside <pre>."""
    if not isinstance(html, str):
        raise ConversionError("Editor HTML must be a string")
    try:
        doc = html_to_tiptap(html)
    except RecursionError as exc:
        logger.error("Editor HTML nested too deeply to convert")
        raise ConversionError("Editor HTML is nested too deeply") from exc
    return tiptap_to_blocks(doc, resolve_asset, diagnostics, strip=True)


def _block_nodes(parent: Tag) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    pending: list[dict[str, Any]] = []

    def flush() -> None:
        if any(n.get("type") != "text" or n.get("text", "").strip() for n in pending):
            nodes.append({"type": "paragraph", "content": list(pending)})
        pending.clear()

    for child in parent.children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            pending.extend(_inline_nodes(child, []))
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name.lower()
        if name in _SKIPPED_TAGS:
            continue
        if name in _BLOCK_TAGS:
            flush()
            nodes.extend(_block_node(child, name))
        else:
            pending.extend(_inline_nodes(child, []))
    flush()
    return nodes


def _block_node(tag: Tag, name: str) -> list[dict[str, Any]]:
    if name == "p":
        return [_text_node("paragraph", tag, {})]
    if name in _HEADING_TAGS:
        return [_text_node("heading", tag, {"level": _HEADING_TAGS[name]})]
    if name == "blockquote":
        return [{"type": "blockquote", "content": _block_nodes(tag)}]
    if name in ("ul", "ol"):
        items = [
            {"type": "listItem", "content": _block_nodes(li)}
            for li in tag.find_all("li", recursive=False)
        ]
        return [{"type": "bulletList" if name == "ul" else "orderedList", "content": items}]
    if name == "pre":
        return [{"type": "codeBlock", "content": [{"type": "text", "text": tag.get_text()}]}]
    if name == "table":
        return [_table_node(tag)]
    if name == "hr":
        return [{"type": "horizontalRule"}]
    if name == "img":
        return [_image_node(tag)]
    return _block_nodes(tag)


def _text_node(kind: str, tag: Tag, attrs: dict[str, Any]) -> dict[str, Any]:
    indent = tag.get("data-indent-level")
    if indent is not None:
        attrs["indentLevel"] = _as_int(indent, 0)
    return {"type": kind, "attrs": attrs, "content": _inline_children(tag, [])}


def _table_node(table: Tag) -> dict[str, Any]:
    rows = []
    for tr in table.find_all("tr"):
        if tr.find_parent("table") is not table:
            continue
        cells = [
            {
                "type": "tableHeader" if cell.name == "th" else "tableCell",
                "content": _block_nodes(cell),
            }
            for cell in tr.find_all(["td", "th"], recursive=False)
        ]
        rows.append({"type": "tableRow", "content": cells})
    return {"type": "table", "content": rows}


def _image_node(tag: Tag) -> dict[str, Any]:
    return {
        "type": "image",
        "attrs": {
            "src": tag.get("src"),
            "alt": tag.get("alt"),
            "data-sanity-ref": tag.get("data-sanity-ref"),
            "data-sanity-image": tag.get("data-sanity-image"),
        },
    }


def _inline_children(tag: Tag, marks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    for child in tag.children:
        nodes.extend(_inline_nodes(child, marks))
    return nodes


def _inline_nodes(node: Any, marks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if isinstance(node, PreformattedString):
        return []
    if isinstance(node, NavigableString):
        text = _WHITESPACE_RE.sub(" ", str(node))
        if not text:
            return []
        result: dict[str, Any] = {"type": "text", "text": text}
        if marks:
            result["marks"] = list(marks)
        return [result]
    if not isinstance(node, Tag):
        return []

    name = node.name.lower()
    if name in _SKIPPED_TAGS:
        return []
    if name == "br":
        return [{"type": "hardBreak", "marks": list(marks)}]
    if name == "img":
        return [_image_node(node)]
    if name in _HTML_MARKS:
        return _inline_children(node, marks + [{"type": _HTML_MARKS[name]}])
    if name == "a" and node.get("href"):
        return _inline_children(node, marks + [{"type": "link", "attrs": {"href": node["href"]}}])
    return _inline_children(node, marks)
