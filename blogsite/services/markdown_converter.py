"""
blogsite/services/markdown_converter.py — Markdown → content blocks

Markdown is parsed into mistune's AST (CommonMark + strikethrough + tables)
and the tree is walked into a BlockBuilder.

Supported: headings h1-h6, paragraphs, bold/italic/inline code/strike spans,
links, bullet/numbered lists with nesting, blockquotes, fenced and indented
code (a paragraph whose single span carries the code mark), tables, and
images that resolve to an existing asset reference. Images are never
uploaded; an image without a resolvable reference is dropped with a
diagnostic. Raw HTML blocks and thematic breaks have no block equivalent and
are dropped the same way.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

import mistune
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

_markdown_ast = mistune.create_markdown(renderer="ast", plugins=["strikethrough", "table"])

_INLINE_DECORATORS = {
    "strong": Decorator.STRONG.value,
    "emphasis": Decorator.EM.value,
    "strikethrough": Decorator.STRIKE.value,
}

_SILENT_BLOCKS = {"blank_line"}


def markdown_to_blocks(
    markdown: str,
    resolve_asset: Optional[AssetResolver] = None,
    diagnostics: Optional[list[str]] = None,
) -> list[Any]:
    """
    Convert markdown into an ordered list of content blocks.

    `resolve_asset` maps an image URL to an asset reference (default: Sanity
    refs and CDN URLs). Dropped constructs are appended to `diagnostics`.
    Raises ConversionError when the input is not a string or cannot be parsed.
    """
    if not isinstance(markdown, str):
        raise ConversionError("Markdown content must be a string")

    try:
        tokens = _markdown_ast(markdown)
    except (ValueError, TypeError, IndexError, RecursionError) as exc:
        logger.error(f"Markdown parse failed: {exc}")
        raise ConversionError("Markdown could not be parsed") from exc

    walker = _MarkdownWalker(resolve_asset or resolve_sanity_asset, diagnostics)
    walker.blocks(tokens)
    return walker.builder.finish()


class _MarkdownWalker:
    def __init__(self, resolve_asset: AssetResolver, diagnostics: Optional[list[str]]) -> None:
        self.builder = BlockBuilder("markdown", diagnostics)
        self.resolve_asset = resolve_asset

    # ── block level ──────────────────────────────────────────────────────────

    def blocks(self, tokens: list[dict[str, Any]], style: str = BlockStyle.NORMAL.value) -> None:
        for token in tokens:
            self.block(token, style)

    def block(self, token: dict[str, Any], style: str = BlockStyle.NORMAL.value) -> None:
        kind = token.get("type")
        b = self.builder

        if kind == "heading":
            level = int(token.get("attrs", {}).get("level", 1))
            b.start_text(style=BlockStyle.heading(level))
            self.inline(token.get("children", []))
            b.end_text()
        elif kind in ("paragraph", "block_text"):
            b.start_text(style=style)
            self.inline(token.get("children", []))
            b.end_text()
        elif kind == "block_quote":
            self.blocks(token.get("children", []), style=BlockStyle.BLOCKQUOTE.value)
        elif kind == "list":
            self.list(token)
        elif kind == "block_code":
            b.start_text(style=style)
            b.add_text(token.get("raw", "").rstrip("\n"), [Decorator.CODE.value])
            b.end_text(strip=False)
        elif kind == "table":
            self.table(token)
        elif kind in _SILENT_BLOCKS:
            return
        else:
            b.drop(f"unsupported markdown block: {kind}")

    def list(self, token: dict[str, Any]) -> None:
        attrs = token.get("attrs", {})
        list_type = ListType.NUMBER if attrs.get("ordered") else ListType.BULLET
        level = int(attrs.get("depth", 0)) + 1

        for item in token.get("children", []):
            for child in item.get("children", []):
                kind = child.get("type")
                if kind == "list":
                    self.list(child)
                elif kind in ("paragraph", "block_text"):
                    self.builder.start_text(list_item=list_type, level=level)
                    self.inline(child.get("children", []))
                    self.builder.end_text()
                else:
                    self.block(child)

    def table(self, token: dict[str, Any]) -> None:
        rows: list[TableRow] = []
        for section in token.get("children", []):
            is_head = section.get("type") == "table_head"
            children = section.get("children", [])
            # mistune puts header cells directly under table_head
            if children and children[0].get("type") == "table_cell":
                children = [{"type": "table_row", "children": children}]
            for row in children:
                cells = [
                    self.table_cell(cell, is_head or bool(cell.get("attrs", {}).get("head")))
                    for cell in row.get("children", [])
                ]
                rows.append(TableRow(cells=cells))
        self.builder.add_table(TableBlock(rows=rows))

    def table_cell(self, cell: dict[str, Any], is_header: bool) -> TableCell:
        nested = _MarkdownWalker(self.resolve_asset, self.builder.diagnostics)
        nested.builder.start_text()
        nested.inline(cell.get("children", []))
        return TableCell(content=nested.builder.text_blocks(), is_header=is_header)

    # ── inline level ─────────────────────────────────────────────────────────

    def inline(
        self,
        tokens: list[dict[str, Any]],
        decorators: tuple[str, ...] = (),
        href: Optional[str] = None,
    ) -> None:
        b = self.builder
        for token in tokens:
            kind = token.get("type")
            if kind == "text":
                b.add_text(token.get("raw", ""), decorators, href)
            elif kind in _INLINE_DECORATORS:
                self.inline(token.get("children", []), decorators + (_INLINE_DECORATORS[kind],), href)
            elif kind == "codespan":
                b.add_text(token.get("raw", ""), decorators + (Decorator.CODE.value,), href)
            elif kind == "link":
                url = token.get("attrs", {}).get("url")
                self.inline(token.get("children", []), decorators, url)
            elif kind == "softbreak":
                b.add_text(" ", decorators, href)
            elif kind == "linebreak":
                b.add_text("\n", decorators, href)
            elif kind == "image":
                url = token.get("attrs", {}).get("url", "")
                alt = _plain_text(token.get("children", []))
                b.add_image(self.resolve_asset(url), alt, context={"url": url[:200]})
            elif kind == "inline_html":
                b.drop("inline HTML removed", {"html": token.get("raw", "")[:100]})
            else:
                # Unknown inline containers still contribute their text.
                if "children" in token:
                    self.inline(token["children"], decorators, href)
                elif token.get("raw"):
                    b.add_text(token["raw"], decorators, href)


def _plain_text(tokens: list[dict[str, Any]]) -> str:
    parts = []
    for token in tokens:
        if "children" in token:
            parts.append(_plain_text(token["children"]))
        else:
            parts.append(token.get("raw", ""))
    return "".join(parts)
