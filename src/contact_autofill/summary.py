"""Accumulate the audit trail of what the engine did for each field."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .grouping import collapse_logical_fields
from .models import FieldDescriptor, FilledEntry, FormSchema
from .roles import OTHER_ROLE, ResolvedValue, canonical_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FillOutcome:
    """Result of a successful write, before it is projected into summary rows."""

    selector: str
    value: str
    context: str = "main"
    source: str = "selector"
    option_value: str = ""


class FillSummaryRecorder:
    """Ordered FilledEntry rows; ``order`` is shared across every pass using this recorder."""

    def __init__(self) -> None:
        self._entries: List[FilledEntry] = []
        self._order = 0

    @property
    def entries(self) -> List[FilledEntry]:
        return list(self._entries)

    @property
    def last_order(self) -> int:
        return self._order

    def begin_field(self) -> int:
        self._order += 1
        return self._order

    def record_success(
        self,
        descriptor: FieldDescriptor,
        order: int,
        resolved: ResolvedValue,
        outcome: FillOutcome,
    ) -> List[FilledEntry]:
        roles = list(resolved.satisfied_roles) or [_primary_writable_role(descriptor)]
        rows = [
            self._append(
                descriptor,
                order,
                role=role,
                selector=outcome.selector,
                value=outcome.value,
                option_value=outcome.option_value,
                context=outcome.context,
                source=outcome.source,
            )
            for role in roles
        ]
        logger.info(
            "Filled order=%s roles=%s selector=%s context=%s source=%s",
            order,
            ",".join(roles),
            outcome.selector,
            outcome.context,
            outcome.source,
        )
        return rows

    def record_unresolved(self, descriptor: FieldDescriptor, order: int, reason: str = "") -> FilledEntry:
        logger.warning(
            "Unresolved field order=%s roles=%s type=%s name=%s id=%s reason=%s",
            order,
            ",".join(descriptor.roles),
            descriptor.type,
            descriptor.name_attr,
            descriptor.id_attr,
            reason or "no match",
        )
        return self._append(descriptor, order, role=OTHER_ROLE, selector="", value="", source="unresolved")

    def record_marker(
        self,
        role: str,
        type_: str,
        selector: str,
        label: str,
        value: str,
        *,
        name_attr: str = "",
        id_attr: str = "",
        context: str = "main",
    ) -> FilledEntry:
        """Record something detected on the page that is not a schema field (e.g. a captcha)."""
        entry = FilledEntry(
            role=role,
            roles=[role],
            type=type_,
            label=label,
            name_attr=name_attr,
            id_attr=id_attr,
            selector=selector,
            value=value,
            order=self.begin_field(),
            context=context,
            source="detected",
        )
        self._entries.append(entry)
        return entry

    def _append(
        self,
        descriptor: FieldDescriptor,
        order: int,
        *,
        role: str,
        selector: str,
        value: str,
        option_value: str = "",
        context: str = "",
        source: str = "selector",
    ) -> FilledEntry:
        entry = FilledEntry(
            role=role,
            roles=list(descriptor.roles),
            type=descriptor.type,
            label=descriptor.label,
            name_attr=descriptor.name_attr,
            id_attr=descriptor.id_attr,
            selector=selector,
            value=value,
            order=order,
            option_value=option_value,
            context=context,
            source=source,
        )
        self._entries.append(entry)
        return entry

    def values_by_role(self) -> Dict[str, str]:
        return values_by_role(self._entries)

    def project_row(self, headers: Sequence[str]) -> List[str]:
        return project_row(self._entries, headers)


def _primary_writable_role(descriptor: FieldDescriptor) -> str:
    for role in descriptor.roles:
        if canonical_role(role) != OTHER_ROLE:
            return role
    return OTHER_ROLE


def values_by_role(entries: Iterable[FilledEntry]) -> Dict[str, str]:
    """First recorded value per role, skipping rows without a role."""
    mapping: Dict[str, str] = {}
    for entry in entries:
        role = (entry.role or "").strip()
        if not role or role in mapping:
            continue
        mapping[role] = entry.value or ""
    return mapping


def project_row(entries: Iterable[FilledEntry], headers: Sequence[str]) -> List[str]:
    """Align recorded values to a header row of role names; missing roles become ''."""
    mapping = values_by_role(entries)
    return [mapping.get(header.strip(), "") for header in headers]


def entries_for_log(
    summary: Sequence[FilledEntry],
    schema: Optional[FormSchema] = None,
) -> List[Dict[str, Any]]:
    """Rows to hand to an audit log; falls back to the bare schema when nothing was filled."""
    if summary:
        return [entry.to_record() for entry in summary]
    if schema is None:
        return []
    rows: List[Dict[str, Any]] = []
    for idx, descriptor in enumerate(collapse_logical_fields(schema.fields), start=1):
        rows.append(
            FilledEntry(
                role=descriptor.primary_role or OTHER_ROLE,
                roles=list(descriptor.roles),
                type=descriptor.type,
                label=descriptor.label,
                name_attr=descriptor.name_attr,
                id_attr=descriptor.id_attr,
                order=idx,
                source="unresolved",
            ).to_record()
        )
    return rows
