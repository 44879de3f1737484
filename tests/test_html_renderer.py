"""
tests/test_html_renderer.py — Content blocks → editor HTML, and the round trip back
"""
from __future__ import annotations

from blogsite.models import EditorContentStatus, dump_blocks
from blogsite.services.editor_converter import html_to_blocks
from blogsite.services.html_renderer import blocks_to_html, render_editor_content
from blogsite.services.markdown_converter import markdown_to_blocks

REF = "image-abc123-800x600-png"


def _span(text, marks=None, key="s"):
    return {"_type": "span", "_key": key, "text": text, "marks": marks or []}


def _block(text, style="normal", key="b", **extra):
    block = {"_type": "block", "_key": key, "style": style, "children": [_span(text, key=f"{key}s")], "markDefs": []}
    block.update(extra)
    return block


def _cell(text, header=False):
    content = [_block(text)] if text else []
    return {"_type": "tableCell", "content": content, "isHeader": header}


def _signature(blocks):
    """Structure that must survive a round trip, ignoring generated keys."""
    result = []
    for block in blocks:
        if block.type_ == "block":
            spans = [
                (s.text, [m if m in {"strong", "em", "code", "underline", "strike-through"}
                          else block.link_href(m) for m in s.marks])
                for s in block.children
            ]
            result.append(("block", block.style, block.list_item, block.level, block.indent_level, spans))
        elif block.type_ == "image":
            result.append(("image", block.asset_ref, block.alt))
        else:
            result.append(("table", [[(c.is_header, [_signature(c.content)]) for c in row.cells]
                                     for row in block.rows]))
    return result


def test_paragraph_heading_and_quote():
    html = blocks_to_html([
        _block("Title", style="h2", key="a"),
        _block("Body", key="b", indentLevel=2),
        _block("Quote", style="blockquote", key="c"),
    ])
    assert html == (
        "<h2>Title</h2>"
        '<p data-indent-level="2">Body</p>'
        "<blockquote><p>Quote</p></blockquote>"
    )


def test_mark_nesting_order_is_fixed():
    block = {
        "_type": "block",
        "style": "normal",
        "markDefs": [{"_type": "link", "_key": "l1", "href": "https://example.com"}],
        "children": [_span("x", ["code", "em", "l1", "strong"])],
    }
    assert blocks_to_html([block]) == (
        '<p><a href="https://example.com"><strong><em><code>x</code></em></strong></a></p>'
    )


def test_code_block_with_edge_whitespace_renders_as_pre():
    block = _block("  x = 1", key="c")
    block["children"][0]["marks"] = ["code"]
    html = blocks_to_html([block])
    assert html == "<pre><code>  x = 1</code></pre>"
    restored = html_to_blocks(html)[0]
    assert (restored.plain_text, restored.children[0].marks) == ("  x = 1", ["code"])


def test_inline_code_without_edge_whitespace_stays_in_paragraph():
    block = _block("x = 1", key="c")
    block["children"][0]["marks"] = ["code"]
    assert blocks_to_html([block]) == "<p><code>x = 1</code></p>"


def test_text_is_escaped_and_newlines_become_br():
    html = blocks_to_html([_block("a < b & c\nnext")])
    assert html == "<p>a &lt; b &amp; c<br>next</p>"


def test_lists_nest_and_switch_type():
    blocks = [
        _block("one", key="a", listItem="bullet", level=1),
        _block("inner", key="b", listItem="bullet", level=2),
        _block("two", key="c", listItem="bullet", level=1),
        _block("first", key="d", listItem="number", level=1),
        _block("after", key="e"),
    ]
    assert blocks_to_html(blocks) == (
        "<ul><li><p>one</p><ul><li><p>inner</p></li></ul></li><li><p>two</p></li></ul>"
        "<ol><li><p>first</p></li></ol>"
        "<p>after</p>"
    )


def test_image_carries_reference():
    html = blocks_to_html(
        [{"_type": "image", "asset": {"_type": "reference", "_ref": REF}, "alt": "Cat"}],
        image_url=lambda ref: f"https://img.test/{ref}",
    )
    assert html.startswith(f'<img src="https://img.test/{REF}" alt="Cat" data-sanity-ref="{REF}"')
    assert "data-sanity-image=" in html


def test_image_src_empty_without_project():
    html = blocks_to_html([{"_type": "image", "asset": {"_type": "reference", "_ref": REF}}])
    assert html.startswith('<img src="" alt=""')


def test_uneven_table_rows_are_padded():
    table = {
        "_type": "table",
        "rows": [
            {"_type": "tableRow", "cells": [_cell("A", True), _cell("B", True), _cell("C", True)]},
            {"_type": "tableRow", "cells": [_cell("1")]},
            {"_type": "tableRow", "cells": [_cell("x"), _cell("")]},
        ],
    }
    html = blocks_to_html([table])
    assert html == (
        "<table><tbody>"
        "<tr><th><p>A</p></th><th><p>B</p></th><th><p>C</p></th></tr>"
        "<tr><td><p>1</p></td><td></td><td></td></tr>"
        "<tr><td><p>x</p></td><td></td><td></td></tr>"
        "</tbody></table>"
    )
    # padded cells come back as present-but-empty cells
    parsed = html_to_blocks(html)[0]
    assert [len(row.cells) for row in parsed.rows] == [3, 3, 3]
    assert parsed.rows[1].cells[2].content == []


def test_malformed_items_are_skipped():
    html = blocks_to_html(["nope", {"_type": "mystery"}, _block("ok")])
    assert html == "<p>ok</p>"


def test_non_list_renders_empty_string():
    assert blocks_to_html(None) == ""
    assert blocks_to_html({"_type": "block"}) == ""


# ── Editor status ─────────────────────────────────────────────────────────────

def test_editor_status_empty_vs_failed():
    assert render_editor_content(None).status == EditorContentStatus.EMPTY
    assert render_editor_content([]).status == EditorContentStatus.EMPTY

    failed = render_editor_content("# markdown, not blocks")
    assert failed.status == EditorContentStatus.FAILED
    assert failed.html == ""

    unreadable = render_editor_content([1, "two", {"_type": "mystery"}])
    assert unreadable.status == EditorContentStatus.FAILED
    assert unreadable.html == ""


def test_editor_status_ok_with_partial_skip():
    content = render_editor_content([_block("fine"), {"_type": "mystery"}])
    assert content.status == EditorContentStatus.OK
    assert content.html == "<p>fine</p>"
    assert content.message == "1 block(s) could not be displayed"


# ── Round trip ────────────────────────────────────────────────────────────────

def test_round_trip_preserves_structure():
    markdown = (
        "# Heading\n\n"
        "Some **bold** and *italic* with [a link](https://example.com) and `code`.\n\n"
        "- one\n- two\n  - nested\n\n"
        "1. first\n2. second\n\n"
        "> quoted\n\n"
        "```\nline 1\nline 2\n```\n\n"
        "```\n  x = 1\n```\n\n"
        f"![Alt text]({REF})\n\n"
        "| H1 | H2 |\n| --- | --- |\n| a | **b** |\n"
    )
    original = markdown_to_blocks(markdown)
    html = blocks_to_html(dump_blocks(original))
    restored = html_to_blocks(html)
    assert _signature(restored) == _signature(original)


def test_empty_paragraph_round_trips():
    original = [_block("", key="e"), _block("text", key="t")]
    restored = html_to_blocks(blocks_to_html(original))
    assert [b.plain_text for b in restored] == ["", "text"]
