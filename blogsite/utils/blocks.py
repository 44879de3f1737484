"""
blogsite/utils/blocks.py — Block array hygiene shared by converters and the import pipeline
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from blogsite.models import (
    CONTENT_BLOCK_ADAPTER,
    ImageBlock,
    TableBlock,
    TextBlock,
    generate_key,
)


def parse_block(raw: Any) -> Optional[Any]:
    """Validate one wire-format block. Returns None if it is not block-shaped."""
    if not isinstance(raw, dict):
        return None
    try:
        return CONTENT_BLOCK_ADAPTER.validate_python(raw)
    except PydanticValidationError as exc:
        logger.debug(f"Rejected block {raw.get('_type')!r}: {exc.error_count()} error(s)")
        return None


def is_meaningful(block: Any) -> bool:
    """Images always count; tables need a non-empty row; text blocks need spans."""
    if isinstance(block, ImageBlock):
        return True
    if isinstance(block, TableBlock):
        return any(row.cells for row in block.rows)
    if isinstance(block, TextBlock):
        return len(block.children) > 0
    return False


def ensure_unique_keys(blocks: Iterable[Any]) -> list[Any]:
    """Re-key any block, span, row or cell whose key repeats within the document."""
    seen: set[str] = set()

    def claim(model: Any) -> None:
        if not model.key or model.key in seen:
            model.key = generate_key()
            while model.key in seen:
                model.key = generate_key()
        seen.add(model.key)

    def walk_text(block: TextBlock) -> None:
        claim(block)
        for span in block.children:
            claim(span)

    result = list(blocks)
    for block in result:
        if isinstance(block, TextBlock):
            walk_text(block)
        elif isinstance(block, TableBlock):
            claim(block)
            for row in block.rows:
                claim(row)
                for cell in row.cells:
                    claim(cell)
                    for inner in cell.content:
                        walk_text(inner)
        else:
            claim(block)
    return result


def normalize_blocks(raw_blocks: Any) -> tuple[list[Any], int]:
    """
    Validate a wire-format block array.

    Returns (blocks, rejected_count). Unshaped items and empty text/table
    blocks are dropped, missing keys are generated, duplicate keys re-keyed.
    Block order is preserved.
    """
    if not isinstance(raw_blocks, list):
        return [], 0

    blocks: list[Any] = []
    rejected = 0
    for raw in raw_blocks:
        block = parse_block(raw)
        if block is None:
            rejected += 1
            continue
        if not is_meaningful(block):
            continue
        blocks.append(block)
    return ensure_unique_keys(blocks), rejected


def find_main_image(blocks: Iterable[Any]) -> Optional[ImageBlock]:
    """The first image block by array index, if any."""
    for block in blocks:
        if isinstance(block, ImageBlock):
            return block
    return None


def main_image_field(block: ImageBlock) -> dict[str, Any]:
    """Shape the post's mainImage field from an image block."""
    field: dict[str, Any] = {
        "_type": "image",
        "asset": {"_type": "reference", "_ref": block.asset_ref},
    }
    if block.alt:
        field["alt"] = block.alt
    return field
