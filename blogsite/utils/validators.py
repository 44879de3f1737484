"""
blogsite/utils/validators.py — Request field validation
"""
from __future__ import annotations

import re
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from blogsite.core.errors import ValidationError

T = TypeVar("T", bound=BaseModel)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_DOCUMENT_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def slugify(title: str) -> str:
    """Lowercase, collapse non-alphanumerics to one hyphen, trim hyphens."""
    return _NON_ALNUM_RE.sub("-", title.lower()).strip("-")


def parse_request_model(model_class: Type[T], data: Any) -> T:
    """Validate a JSON body into `model_class`, raising a 400 ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model_class.model_validate(data)
    except PydanticValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in exc.errors()
        )
        raise ValidationError(f"Invalid field(s): {fields}") from exc


def check_optional_text(value: Optional[str], field: str, max_length: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{field} too long (max {max_length} characters)")


def check_document_id(value: Optional[str], max_length: int, field: str = "postId") -> None:
    if value is None:
        return
    if not isinstance(value, str) or not value or len(value) > max_length:
        raise ValidationError(f"Invalid {field}")
    if not _DOCUMENT_ID_RE.match(value):
        raise ValidationError(f"Invalid {field}")


def check_id_list(values: Optional[list[str]], field: str, max_length: int) -> None:
    if values is None:
        return
    for value in values:
        check_document_id(value, max_length, field)
