"""
tests/test_markdown_converter.py — Markdown → content blocks
"""
from __future__ import annotations

import pytest

from blogsite.core.errors import ConversionError
from blogsite.models import ImageBlock, TableBlock, TextBlock
from blogsite.services.markdown_converter import markdown_to_blocks

ASSET_REF = "image-abc123-800x600-png"


def _resolver(url: str):
    return ASSET_REF if url == "https://cdn.example.com/known.png" else None


def test_heading_then_paragraph():
    blocks = markdown_to_blocks("# Hello\n\nWorld")
    assert len(blocks) == 2
    assert blocks[0].style == "h1"
    assert blocks[0].plain_text == "Hello"
    assert blocks[1].style == "normal"
    assert blocks[1].plain_text == "World"


def test_all_heading_levels():
    md = "\n\n".join(f"{'#' * n} Level {n}" for n in range(1, 7))
    blocks = markdown_to_blocks(md)
    assert [b.style for b in blocks] == ["h1", "h2", "h3", "h4", "h5", "h6"]


def test_inline_decorators():
    block = markdown_to_blocks("Plain **bold** *italic* `code` ~~gone~~")[0]
    marks = {span.text: span.marks for span in block.children}
    assert marks["bold"] == ["strong"]
    assert marks["italic"] == ["em"]
    assert marks["code"] == ["code"]
    assert marks["gone"] == ["strike-through"]


def test_nested_marks_use_fixed_order():
    block = markdown_to_blocks("***both***")[0]
    assert block.children[0].marks == ["strong", "em"]


def test_link_becomes_mark_def():
    block = markdown_to_blocks("See [the docs](https://example.com/docs) now")[0]
    link_span = next(s for s in block.children if s.text == "the docs")
    assert len(block.mark_defs) == 1
    assert link_span.marks == [block.mark_defs[0].key]
    assert block.mark_defs[0].href == "https://example.com/docs"


def test_same_href_shares_one_mark_def():
    block = markdown_to_blocks("[a](https://x.com) and [b](https://x.com)")[0]
    assert len(block.mark_defs) == 1


def test_unsafe_link_keeps_text_without_mark():
    diagnostics: list[str] = []
    block = markdown_to_blocks("[click](javascript:alert)", diagnostics=diagnostics)[0]
    assert block.plain_text == "click"
    assert block.mark_defs == []
    assert block.children[0].marks == []
    assert diagnostics == ["link target refused"]


def test_bullet_and_numbered_lists_with_nesting():
    md = "- one\n- two\n  - nested\n\n1. first\n2. second"
    blocks = markdown_to_blocks(md)
    shape = [(b.list_item, b.level, b.plain_text) for b in blocks]
    assert shape == [
        ("bullet", 1, "one"),
        ("bullet", 1, "two"),
        ("bullet", 2, "nested"),
        ("number", 1, "first"),
        ("number", 1, "second"),
    ]


def test_blockquote():
    blocks = markdown_to_blocks("> quoted text")
    assert blocks[0].style == "blockquote"
    assert blocks[0].plain_text == "quoted text"


def test_fenced_code_is_monospace_paragraph():
    blocks = markdown_to_blocks("```python\nprint('hi')\nx = 1\n```")
    assert len(blocks) == 1
    assert blocks[0].style == "normal"
    assert blocks[0].children[0].marks == ["code"]
    assert blocks[0].children[0].text == "print('hi')\nx = 1"


def test_resolvable_image_becomes_image_block():
    blocks = markdown_to_blocks("![A cat](https://cdn.example.com/known.png)", resolve_asset=_resolver)
    assert len(blocks) == 1
    assert isinstance(blocks[0], ImageBlock)
    assert blocks[0].asset_ref == ASSET_REF
    assert blocks[0].alt == "A cat"


def test_unresolvable_image_is_dropped_with_diagnostic():
    diagnostics: list[str] = []
    blocks = markdown_to_blocks(
        "Before\n\n![x](https://elsewhere.com/a.png)\n\nAfter",
        resolve_asset=_resolver,
        diagnostics=diagnostics,
    )
    assert [b.plain_text for b in blocks] == ["Before", "After"]
    assert diagnostics == ["image has no resolvable asset reference"]


def test_image_inside_paragraph_splits_it():
    blocks = markdown_to_blocks(
        "Left ![pic](https://cdn.example.com/known.png) right", resolve_asset=_resolver
    )
    assert [type(b).__name__ for b in blocks] == ["TextBlock", "ImageBlock", "TextBlock"]
    assert blocks[0].plain_text == "Left"
    assert blocks[2].plain_text == "right"


def test_sanity_cdn_url_resolves_by_default():
    url = "https://cdn.sanity.io/images/proj/production/abc123-800x600.png"
    blocks = markdown_to_blocks(f"![alt]({url})")
    assert blocks[0].asset_ref == "image-abc123-800x600-png"


def test_pipe_table():
    md = "| Name | Age |\n| --- | --- |\n| Ann | 31 |\n| Bob | **40** |"
    blocks = markdown_to_blocks(md)
    assert len(blocks) == 1
    table = blocks[0]
    assert isinstance(table, TableBlock)
    assert len(table.rows) == 3
    assert all(cell.is_header for cell in table.rows[0].cells)
    assert not any(cell.is_header for cell in table.rows[1].cells)
    assert table.rows[0].cells[0].content[0].plain_text == "Name"
    assert table.rows[2].cells[1].content[0].children[0].marks == ["strong"]


def test_soft_break_becomes_space_and_hard_break_newline():
    assert markdown_to_blocks("one\ntwo")[0].plain_text == "one two"
    assert markdown_to_blocks("one  \ntwo")[0].plain_text == "one\ntwo"


def test_keys_are_unique():
    blocks = markdown_to_blocks("# A\n\nB **c** d\n\n- e\n- f")
    keys = [b.key for b in blocks] + [s.key for b in blocks for s in b.children]
    assert len(keys) == len(set(keys))


def test_empty_markdown_gives_no_blocks():
    assert markdown_to_blocks("") == []
    assert markdown_to_blocks("   \n\n  ") == []


def test_non_string_raises_conversion_error():
    with pytest.raises(ConversionError):
        markdown_to_blocks(None)
    with pytest.raises(ConversionError):
        markdown_to_blocks(["# nope"])


def test_blocks_are_text_blocks():
    blocks = markdown_to_blocks("para")
    assert isinstance(blocks[0], TextBlock)
