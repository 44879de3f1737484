"""
tests/test_validators.py — Request field validation and block hygiene
"""
from __future__ import annotations

import pytest

from blogsite.core.errors import ValidationError
from blogsite.models import ImportRequest
from blogsite.utils.blocks import find_main_image, normalize_blocks, parse_block
from blogsite.utils.validators import (
    check_document_id,
    check_optional_text,
    parse_request_model,
    slugify,
)


@pytest.mark.parametrize("title,slug", [
    ("Hello", "hello"),
    ("Hello, World!", "hello-world"),
    ("  --Trim me--  ", "trim-me"),
    ("Ünïcode café", "n-code-caf"),
    ("!!!", ""),
])
def test_slugify(title, slug):
    assert slugify(title) == slug


def test_parse_request_model_requires_object():
    with pytest.raises(ValidationError):
        parse_request_model(ImportRequest, ["not", "an", "object"])


def test_parse_request_model_names_bad_fields():
    with pytest.raises(ValidationError, match="title"):
        parse_request_model(ImportRequest, {"title": {"nested": True}})


def test_parse_request_model_accepts_aliases():
    request = parse_request_model(ImportRequest, {"postId": "p-1", "tagIds": ["t1"]})
    assert request.post_id == "p-1"
    assert request.tag_ids == ["t1"]


def test_check_optional_text():
    check_optional_text(None, "title", 5)
    check_optional_text("12345", "title", 5)
    with pytest.raises(ValidationError, match="title too long"):
        check_optional_text("123456", "title", 5)


@pytest.mark.parametrize("value", ["", "a b", "a/b", "x" * 101])
def test_check_document_id_rejects(value):
    with pytest.raises(ValidationError):
        check_document_id(value, 100)


def test_check_document_id_accepts_sanity_ids():
    check_document_id("drafts.post-1_A", 100)
    check_document_id(None, 100)


# ── Block hygiene ─────────────────────────────────────────────────────────────

def test_parse_block_rejects_unknown_shapes():
    assert parse_block("text") is None
    assert parse_block({"_type": "video"}) is None
    assert parse_block({"_type": "image"}) is None


def test_normalize_drops_empty_text_and_counts_rejects():
    raw = [
        {"_type": "block", "children": []},
        {"_type": "block", "children": [{"_type": "span", "text": "kept"}]},
        {"_type": "image", "asset": {"_type": "reference", "_ref": "image-a-1x1-png"}},
        {"_type": "bogus"},
    ]
    blocks, rejected = normalize_blocks(raw)
    assert rejected == 1
    assert [b.type_ for b in blocks] == ["block", "image"]
    assert find_main_image(blocks).asset_ref == "image-a-1x1-png"


def test_normalize_generates_missing_keys():
    blocks, _ = normalize_blocks([{"_type": "block", "children": [{"_type": "span", "text": "x"}]}])
    assert blocks[0].key
    assert blocks[0].children[0].key
