"""Merge classifier output with earlier observations and collapse choice groups."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import FieldDescriptor, FilledEntry
from .roles import CAPTCHA_ROLE, canonical_role

logger = logging.getLogger(__name__)

NO_ATTR_GROUP = "__no_attr_group__"

GROUPABLE_TYPES = frozenset({"radio", "checkbox"})

FieldKey = Tuple[str, str, str, str]


def field_key(descriptor: FieldDescriptor) -> FieldKey:
    return (
        canonical_role(descriptor.primary_role),
        descriptor.name_attr,
        descriptor.id_attr,
        descriptor.label,
    )


def group_key(descriptor: FieldDescriptor) -> Optional[str]:
    if descriptor.type not in GROUPABLE_TYPES:
        return None
    return f"{descriptor.type}|{descriptor.group_attr or NO_ATTR_GROUP}"


def descriptors_from_entries(entries: Iterable[FilledEntry]) -> List[FieldDescriptor]:
    """Rebuild one descriptor per recorded field (rows sharing an ``order``)."""
    descriptors: List[FieldDescriptor] = []
    seen_orders = set()
    for entry in entries:
        if entry.source == "detected" or entry.role == CAPTCHA_ROLE:
            continue
        if entry.order in seen_orders:
            continue
        seen_orders.add(entry.order)
        descriptors.append(
            FieldDescriptor(
                roles=tuple(entry.roles or [entry.role]),
                type=entry.type,
                label=entry.label,
                name_attr=entry.name_attr,
                id_attr=entry.id_attr,
            )
        )
    return descriptors


def merge_schema_and_observed(
    schema_fields: Sequence[FieldDescriptor],
    prior_filled: Optional[Sequence[FilledEntry]] = None,
) -> List[FieldDescriptor]:
    """Match schema fields against prior observations by (primary role, name, id, label).

    Previously observed fields keep their position and are replaced by the
    schema's fresh description; fields new to the schema are appended. Schema
    fields are never merged with each other: identical hints can still be
    distinct inputs.
    """
    merged: List[FieldDescriptor] = []
    slots: Dict[FieldKey, int] = {}
    for descriptor in descriptors_from_entries(prior_filled or []):
        key = field_key(descriptor)
        if key not in slots:
            slots[key] = len(merged)
            merged.append(descriptor)

    updated = 0
    for descriptor in schema_fields:
        slot = slots.pop(field_key(descriptor), None)
        if slot is None:
            merged.append(descriptor)
            continue
        merged[slot] = descriptor
        updated += 1

    if prior_filled:
        logger.debug("Merged %s schema fields with prior attempts (%s updated)", len(schema_fields), updated)
    return merged


def _merge_group(first: FieldDescriptor, other: FieldDescriptor) -> FieldDescriptor:
    roles = list(first.roles)
    for role in other.roles:
        if role not in roles:
            roles.append(role)
    return first.model_copy(
        update={
            "roles": tuple(roles),
            "required": first.required or other.required,
            "label": first.label or other.label,
            "name_attr": first.name_attr or other.name_attr,
            "id_attr": first.id_attr or other.id_attr,
            "preferred_option": first.preferred_option or other.preferred_option,
        }
    )


def collapse_logical_fields(fields: Sequence[FieldDescriptor]) -> List[FieldDescriptor]:
    """Merge consecutive radio/checkbox entries that belong to the same group."""
    collapsed: List[FieldDescriptor] = []
    last_key: Optional[str] = None
    for descriptor in fields:
        key = group_key(descriptor)
        if key is not None and key == last_key and collapsed:
            collapsed[-1] = _merge_group(collapsed[-1], descriptor)
            continue
        collapsed.append(descriptor)
        last_key = key
    return collapsed
