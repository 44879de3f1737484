"""
blogsite/services/block_builder.py — Incremental construction of content blocks

Both converters (markdown and editor documents) walk their input tree and
feed text runs, images and tables into a BlockBuilder. The builder owns span
merging, link markDef bookkeeping and the fixed decorator order, so the two
converters produce identical shapes for identical constructs.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from blogsite.core.logging import log_conversion_issue
from blogsite.core.security import safe_href
from blogsite.models import (
    AssetReference,
    BlockStyle,
    Decorator,
    ImageBlock,
    LinkDef,
    ListType,
    Span,
    TableBlock,
    TextBlock,
    generate_key,
)
from blogsite.utils.blocks import ensure_unique_keys

# Order decorators are stored in on a span. The HTML renderer nests them in
# this same order (after the link wrapper), so output is stable.
DECORATOR_ORDER: tuple[str, ...] = (
    Decorator.STRONG.value,
    Decorator.EM.value,
    Decorator.UNDERLINE.value,
    Decorator.STRIKE.value,
    Decorator.CODE.value,
)


def ordered_decorators(decorators: Iterable[str]) -> list[str]:
    active = set(decorators)
    return [d for d in DECORATOR_ORDER if d in active]


class InlineCollector:
    """Accumulates spans and link markDefs for a single text block."""

    def __init__(self) -> None:
        self.children: list[Span] = []
        self.mark_defs: list[LinkDef] = []
        self._link_keys: dict[str, str] = {}

    def add(self, text: str, decorators: Iterable[str] = (), href: Optional[str] = None) -> None:
        if not text:
            return
        marks = ordered_decorators(decorators)
        href = safe_href(href)
        if href:
            marks.append(self._link_key(href))

        # Adjacent runs with identical marks collapse into one span.
        if self.children and self.children[-1].marks == marks:
            self.children[-1].text += text
            return
        self.children.append(Span(text=text, marks=marks))

    def _link_key(self, href: str) -> str:
        key = self._link_keys.get(href)
        if key is None:
            key = generate_key()
            self._link_keys[href] = key
            self.mark_defs.append(LinkDef(key=key, href=href))
        return key

    @property
    def is_empty(self) -> bool:
        return not any(child.text for child in self.children)

    def _strip_edges(self) -> None:
        if self.children:
            self.children[0].text = self.children[0].text.lstrip()
            self.children[-1].text = self.children[-1].text.rstrip()
        self.children = [child for child in self.children if child.text]
        used = {mark for child in self.children for mark in child.marks}
        self.mark_defs = [md for md in self.mark_defs if md.key in used]

    def to_block(
        self,
        style: str = BlockStyle.NORMAL.value,
        list_item: Optional[str] = None,
        level: Optional[int] = None,
        indent_level: Optional[int] = None,
        keep_empty: bool = False,
        strip: bool = True,
    ) -> Optional[TextBlock]:
        if strip:
            self._strip_edges()
        if self.is_empty:
            if not keep_empty:
                return None
            self.children = [Span(text="")]
            self.mark_defs = []
        return TextBlock(
            style=style,
            children=self.children,
            mark_defs=self.mark_defs,
            list_item=list_item,
            level=level if list_item else None,
            indent_level=indent_level,
        )


class BlockBuilder:
    """
    Collects blocks in reading order.

    Text is added between start_text()/end_text(). An image met while a text
    block is open splits it: the text so far is closed, the image appended,
    and a new text block with the same attributes is opened.
    """

    def __init__(self, source: str, diagnostics: Optional[list[str]] = None) -> None:
        self.source = source
        self.blocks: list[Any] = []
        self.diagnostics = diagnostics if diagnostics is not None else []
        self._inline: Optional[InlineCollector] = None
        self._attrs: dict[str, Any] = {}
        self._resumed = False
        self._refused_links: set[str] = set()

    @property
    def in_text(self) -> bool:
        return self._inline is not None

    def start_text(
        self,
        style: str = BlockStyle.NORMAL.value,
        list_item: Optional[str] = None,
        level: Optional[int] = None,
        indent_level: Optional[int] = None,
    ) -> None:
        if self._inline is not None:
            self.end_text()
        if isinstance(style, BlockStyle):
            style = style.value
        if isinstance(list_item, ListType):
            list_item = list_item.value
        self._inline = InlineCollector()
        self._attrs = {
            "style": style,
            "list_item": list_item,
            "level": level,
            "indent_level": indent_level,
        }
        self._resumed = False

    def add_text(self, text: str, decorators: Iterable[str] = (), href: Optional[str] = None) -> None:
        if self._inline is None:
            self.start_text()
        if href and safe_href(href) is None and href not in self._refused_links:
            self._refused_links.add(href)
            self.drop("link target refused", {"href": str(href)[:100]})
        self._inline.add(text, decorators, href)

    def end_text(self, keep_empty: bool = False, strip: bool = True) -> Optional[TextBlock]:
        if self._inline is None:
            return None
        inline, attrs = self._inline, self._attrs
        keep = keep_empty and not self._resumed
        self._inline = None
        self._attrs = {}
        self._resumed = False
        block = inline.to_block(keep_empty=keep, strip=strip, **attrs)
        if block is not None:
            self.blocks.append(block)
        return block

    def add_image(self, ref: Optional[str], alt: Optional[str] = None,
                  context: Optional[dict[str, Any]] = None) -> Optional[ImageBlock]:
        resume = dict(self._attrs) if self._inline is not None else None
        if resume is not None:
            self.end_text()

        block = None
        if ref:
            block = ImageBlock(asset=AssetReference(ref=ref), alt=alt or None)
            self.blocks.append(block)
        else:
            self.drop("image has no resolvable asset reference", context)

        if resume is not None:
            self.start_text(**resume)
            self._resumed = True
        return block

    def add_table(self, table: TableBlock) -> None:
        if self._inline is not None:
            self.end_text()
        if any(row.cells for row in table.rows):
            self.blocks.append(table)
        else:
            self.drop("table has no cells")

    def drop(self, reason: str, context: Optional[dict[str, Any]] = None) -> None:
        self.diagnostics.append(reason)
        log_conversion_issue(self.source, reason, context)

    def text_blocks(self) -> list[TextBlock]:
        """Text blocks only; used for table cell content, which cannot hold images."""
        if self._inline is not None:
            self.end_text()
        kept = []
        for block in self.blocks:
            if isinstance(block, TextBlock):
                kept.append(block)
            else:
                self.drop(f"{block.type_} not allowed inside a table cell")
        return kept

    def finish(self) -> list[Any]:
        if self._inline is not None:
            self.end_text()
        return ensure_unique_keys(self.blocks)
