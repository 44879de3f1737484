"""
blogsite/models.py — Pydantic schemas for content blocks and API payloads

Content is stored as an ordered array of Portable-Text-style blocks. The wire
shape uses underscore-prefixed keys (`_type`, `_key`, `_ref`); models expose
them as `type_`, `key` and `ref` and serialise back with `by_alias=True`.
"""
from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)

MIN_INDENT_LEVEL = 0
MAX_INDENT_LEVEL = 8


def generate_key() -> str:
    """Random 12-char block/span key."""
    return uuid.uuid4().hex[:12]


# ──────────────────────────────────────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────────────────────────────────────

class BlockType(str, Enum):
    TEXT = "block"
    IMAGE = "image"
    TABLE = "table"


class BlockStyle(str, Enum):
    NORMAL = "normal"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"
    H6 = "h6"
    BLOCKQUOTE = "blockquote"

    @classmethod
    def heading(cls, level: int) -> "BlockStyle":
        return cls(f"h{max(1, min(6, level))}")


class ListType(str, Enum):
    BULLET = "bullet"
    NUMBER = "number"


class Decorator(str, Enum):
    STRONG = "strong"
    EM = "em"
    CODE = "code"
    UNDERLINE = "underline"
    STRIKE = "strike-through"


# ──────────────────────────────────────────────────────────────────────────────
# Inline content
# ──────────────────────────────────────────────────────────────────────────────

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class Span(_WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")

    type_: Literal["span"] = Field("span", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    text: str = ""
    # Decorator names and/or keys of link markDefs in the parent block.
    marks: list[str] = Field(default_factory=list)

    @field_validator("text", mode="before")
    @classmethod
    def _none_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("marks", mode="before")
    @classmethod
    def _none_marks(cls, v: Any) -> Any:
        return [] if v is None else v


class LinkDef(_WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")

    type_: Literal["link"] = Field("link", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    href: str


# ──────────────────────────────────────────────────────────────────────────────
# Blocks
# ──────────────────────────────────────────────────────────────────────────────

class TextBlock(_WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")

    type_: Literal["block"] = Field("block", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    style: BlockStyle = Field(BlockStyle.NORMAL, validate_default=True)
    children: list[Span] = Field(default_factory=list)
    mark_defs: list[LinkDef] = Field(default_factory=list, alias="markDefs")
    list_item: Optional[ListType] = Field(None, alias="listItem")
    level: Optional[int] = Field(None, ge=1)
    indent_level: Optional[int] = Field(None, alias="indentLevel")

    @field_validator("indent_level", mode="before")
    @classmethod
    def _clamp_indent(cls, v: Any) -> Optional[int]:
        """Out-of-range indent levels are clamped, never rejected."""
        if v is None:
            return None
        try:
            level = int(v)
        except (TypeError, ValueError):
            return None
        level = max(MIN_INDENT_LEVEL, min(MAX_INDENT_LEVEL, level))
        return level or None

    @field_validator("mark_defs", mode="before")
    @classmethod
    def _none_mark_defs(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def plain_text(self) -> str:
        return "".join(child.text for child in self.children)

    def link_href(self, mark: str) -> Optional[str]:
        for mark_def in self.mark_defs:
            if mark_def.key == mark:
                return mark_def.href
        return None


class AssetReference(_WireModel):
    type_: Literal["reference"] = Field("reference", alias="_type")
    ref: str = Field(alias="_ref", min_length=1)


class ImageBlock(_WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")

    type_: Literal["image"] = Field("image", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    asset: AssetReference
    alt: Optional[str] = None

    @property
    def asset_ref(self) -> str:
        return self.asset.ref


class TableCell(_WireModel):
    type_: Literal["tableCell"] = Field("tableCell", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    content: list[TextBlock] = Field(default_factory=list)
    is_header: bool = Field(False, alias="isHeader")


class TableRow(_WireModel):
    type_: Literal["tableRow"] = Field("tableRow", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    cells: list[TableCell] = Field(default_factory=list)


class TableBlock(_WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="allow")

    type_: Literal["table"] = Field("table", alias="_type")
    key: str = Field(default_factory=generate_key, alias="_key")
    rows: list[TableRow] = Field(default_factory=list)

    @property
    def column_count(self) -> int:
        return max((len(row.cells) for row in self.rows), default=0)


def _block_discriminator(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("_type", value.get("type_"))
    return getattr(value, "type_", None)


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag(BlockType.TEXT.value)],
        Annotated[ImageBlock, Tag(BlockType.IMAGE.value)],
        Annotated[TableBlock, Tag(BlockType.TABLE.value)],
    ],
    Discriminator(_block_discriminator),
]

CONTENT_BLOCK_ADAPTER: TypeAdapter[Any] = TypeAdapter(ContentBlock)


def dump_block(block: BaseModel) -> dict[str, Any]:
    return block.model_dump(by_alias=True, exclude_none=True, mode="json")


def dump_blocks(blocks: list[Any]) -> list[dict[str, Any]]:
    """Serialise blocks to the store's wire format."""
    return [dump_block(b) for b in blocks]


# ──────────────────────────────────────────────────────────────────────────────
# API payloads
# ──────────────────────────────────────────────────────────────────────────────

class ImportRequest(BaseModel):
    """Body of POST /api/import-markdown. Exactly one of markdown/content."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    markdown: Optional[str] = None
    content: Optional[Any] = None
    post_id: Optional[str] = Field(None, alias="postId")
    title: Optional[str] = None
    excerpt: Optional[str] = None
    category_ids: Optional[list[str]] = Field(None, alias="categoryIds")
    tag_ids: Optional[list[str]] = Field(None, alias="tagIds")


class PostUpdateRequest(BaseModel):
    """Body of PUT /api/admin/posts/{id}. Omitted fields are left untouched."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    excerpt: Optional[str] = None
    # Block array, Tiptap JSON document, or editor HTML string.
    content: Optional[Any] = None
    category_ids: Optional[list[str]] = Field(None, alias="categoryIds")
    tag_ids: Optional[list[str]] = Field(None, alias="tagIds")


class AdminLoginRequest(BaseModel):
    password: Optional[str] = None


class ImportResult(BaseModel):
    post: dict[str, Any]
    message: str
    created: bool = False


class EditorContentStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


class EditorContent(BaseModel):
    html: str = ""
    status: EditorContentStatus = EditorContentStatus.OK
    message: Optional[str] = None
