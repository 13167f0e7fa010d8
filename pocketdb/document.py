"""
Document validation and normalization helpers.
"""

from __future__ import annotations

from typing import Any

from .errors import DocumentValidationError
from .utils import clone, new_id

Document = dict[str, Any]


def validate_document(doc: object, what: str = "document") -> None:
    if not isinstance(doc, dict):
        raise DocumentValidationError(f"{what} must be a dict")

    for key in doc.keys():
        if not isinstance(key, str):
            raise DocumentValidationError(f"{what} keys must be strings")


def normalize_document(doc: dict[str, object]) -> Document:
    """
    Ensure the document is JSON-serializable-ish and has an _id.

    The input is copied, never modified; an existing `_id` is kept as is.
    """
    validate_document(doc)
    normalized = clone(doc)
    if "_id" not in normalized:
        normalized["_id"] = new_id()
    return normalized
