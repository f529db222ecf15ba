"""Build candidate CSS selectors for a field from its DOM identity hints."""

from __future__ import annotations

import re
from typing import List

_CSS_IDENTIFIER = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")


def quote_attr(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def id_selector(id_attr: str) -> str:
    if _CSS_IDENTIFIER.match(id_attr):
        return f"#{id_attr}"
    return f"[id={quote_attr(id_attr)}]"


def type_scope(field_type: str) -> str:
    """Return the element scope used for ``field_type`` when matching by name."""
    if field_type in {"checkbox", "radio"}:
        return f'input[type="{field_type}"]'
    if field_type in {"select", "textarea"}:
        return field_type
    return "input"


def bare_selector(field_type: str) -> str:
    if field_type in {"select", "textarea"}:
        return field_type
    return f'input[type="{field_type or "text"}"]'


def resolve_selectors(field_type: str, name_attr: str = "", id_attr: str = "") -> List[str]:
    """Return candidate selectors, most specific first. Never empty."""
    field_type = (field_type or "text").lower()
    name_attr = (name_attr or "").strip()
    id_attr = (id_attr or "").strip()

    if name_attr:
        return [f"{type_scope(field_type)}[name={quote_attr(name_attr)}]"]
    if id_attr:
        return [id_selector(id_attr)]
    return [bare_selector(field_type)]
