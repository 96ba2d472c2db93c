# Overview: Uniform field access over ORM rows and plain mappings (snake_case or camelCase keys).

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def value_of(record: Any, name: str, default: Any = None) -> Any:
    """
    Read `name` from an ORM object or a mapping.

    Mappings may use either the snake_case name or its camelCase form
    (customer_id / customerId), which is what the kiosk UI sends.
    A present-but-None value is returned as default.
    """
    if isinstance(record, Mapping):
        value = record.get(name)
        if value is None:
            value = record.get(_camel(name))
    else:
        value = getattr(record, name, None)
    return default if value is None else value


def line_variant_id(line: Any) -> str | None:
    """Variant id of a cart/transaction line: flat variant_id or nested variant.id."""
    variant_id = value_of(line, "variant_id")
    if variant_id:
        return variant_id
    variant = value_of(line, "variant")
    if variant is None or isinstance(variant, str):
        return variant or None
    return value_of(variant, "id") or None
