"""
Identity and merge helpers shared by documents and collections.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping, MutableMapping
from typing import Any


def new_id() -> str:
    """
    Return a random version-4 UUID string suitable for a document `_id`.
    """
    return str(uuid.uuid4())


def clone(value: Any) -> Any:
    """
    Structural deep copy; the result shares no references with `value`.
    """
    return copy.deepcopy(value)


def deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """
    Apply every key of `overlay` onto `base` in place and return `base`.

    Nested mappings present on both sides are merged recursively; anything
    else (scalars, lists, a mapping over a scalar) replaces the base value.
    `overlay` is never mutated: replacement values are copied.
    """
    for key, value in overlay.items():
        try:
            current = base[key] if key in base else None
            if isinstance(value, Mapping) and isinstance(current, MutableMapping):
                base[key] = deep_merge(current, value)
            else:
                base[key] = clone(value)
        except (TypeError, AttributeError, KeyError):
            # Traversal failed halfway; the overlay value wins outright.
            base[key] = clone(value)
    return base
