"""Fill a live form from a classified schema and a sender profile."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Optional, Sequence, Union

from .captcha import MANUAL_ACTION_VALUE, detect_captchas
from .config import (
    DEFAULT_INQUIRY_LABEL,
    DEFAULT_TIMEOUT_MS,
    MAX_FRAME_DEPTH,
    MULTI_ROLE_SEPARATOR,
    PHONE_DELIMITER,
)
from .dom import DocumentContext
from .fillers import BaseFiller, FillRequest, build_fillers
from .frames import for_each_context
from .grouping import collapse_logical_fields, merge_schema_and_observed
from .models import FieldDescriptor, FilledEntry, FormSchema, ProfileRecord
from .roles import (
    CAPTCHA_ROLE,
    OTHER_ROLE,
    ResolverContext,
    canonical_role,
    is_agreement_role,
    resolve_field_value,
)
from .selector_resolver import resolve_selectors
from .summary import FillSummaryRecorder

logger = logging.getLogger(__name__)


@dataclass
class FillSettings:
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_frame_depth: int = MAX_FRAME_DEPTH
    separator: str = MULTI_ROLE_SEPARATOR
    phone_delimiter: str = PHONE_DELIMITER
    default_inquiry_label: str = DEFAULT_INQUIRY_LABEL
    detect_captcha: bool = True
    settle: bool = True


@dataclass
class FillReport:
    entries: List[FilledEntry] = field(default_factory=list)
    fields_total: int = 0
    fields_filled: int = 0
    captcha_detected: bool = False


class FormFiller:
    """One fill pass over one page; fields are processed strictly one at a time."""

    def __init__(
        self,
        root: DocumentContext,
        profile: ProfileRecord,
        message: Optional[str] = None,
        *,
        settings: Optional[FillSettings] = None,
        recorder: Optional[FillSummaryRecorder] = None,
    ) -> None:
        self.root = root
        self.profile = profile
        self.settings = settings or FillSettings()
        self.recorder = recorder or FillSummaryRecorder()
        self.resolver_context = ResolverContext(
            message=message,
            phone_delimiter=self.settings.phone_delimiter,
            default_inquiry_label=self.settings.default_inquiry_label,
        )
        self.contexts: List[DocumentContext] = []
        self.report = FillReport()

    async def prepare(self) -> List[DocumentContext]:
        if self.settings.settle:
            await self.root.settle(self.settings.timeout_ms)
        self.contexts = await for_each_context(self.root, max_depth=self.settings.max_frame_depth)
        return self.contexts

    def plan(
        self,
        schema: FormSchema,
        prior_filled: Optional[Sequence[FilledEntry]] = None,
    ) -> List[FieldDescriptor]:
        merged = merge_schema_and_observed(schema.fields, prior_filled)
        fields = [descriptor for descriptor in collapse_logical_fields(merged) if descriptor.roles]
        logger.debug("Planned %s fields from %s schema entries", len(fields), len(schema.fields))
        return fields

    async def iter_fields(self, fields: Sequence[FieldDescriptor]) -> AsyncIterator[List[FilledEntry]]:
        """Fill fields in order, yielding the rows recorded for each one.

        Callers stop between fields by breaking out of the loop.
        """
        fillers = build_fillers(self.contexts)
        reserved = reserved_attributes(fields)
        for descriptor in fields:
            before = len(self.recorder.entries)
            order = self.recorder.begin_field()
            self.report.fields_total += 1
            try:
                if await self._fill_one(descriptor, order, fillers, reserved):
                    self.report.fields_filled += 1
            except Exception:  # noqa: BLE001 - one broken field never stops the pass
                logger.exception("Unexpected error filling field order=%s roles=%s", order, ",".join(descriptor.roles))
                if len(self.recorder.entries) == before:
                    self.recorder.record_unresolved(descriptor, order, reason="error")
            yield self.recorder.entries[before:]

    async def _fill_one(
        self,
        descriptor: FieldDescriptor,
        order: int,
        fillers: Dict[str, BaseFiller],
        reserved: FrozenSet[str] = frozenset(),
    ) -> bool:
        if all(canonical_role(role) == OTHER_ROLE for role in descriptor.roles):
            self.recorder.record_unresolved(descriptor, order, reason="role other")
            return False

        resolved = resolve_field_value(
            descriptor,
            self.profile,
            self.resolver_context,
            separator=self.settings.separator,
        )
        selectors = resolve_selectors(descriptor.type, descriptor.name_attr, descriptor.id_attr)
        request = FillRequest(
            field=descriptor,
            selectors=tuple(selectors),
            resolved=resolved,
            order=order,
            agreement=any(is_agreement_role(role) for role in descriptor.roles),
            reserved=reserved,
        )
        filler = fillers.get(descriptor.type, fillers["text"])
        logger.debug(
            "Field order=%s type=%s roles=%s selectors=%s",
            order,
            descriptor.type,
            ",".join(descriptor.roles),
            selectors,
        )
        return await filler.run(request, self.recorder)

    async def record_captchas(self) -> int:
        markers = await detect_captchas(self.contexts)
        for marker in markers:
            self.recorder.record_marker(
                CAPTCHA_ROLE,
                "text" if marker.kind == "image" else marker.kind,
                marker.selector,
                marker.label,
                MANUAL_ACTION_VALUE,
                name_attr=marker.name,
                id_attr=marker.id,
                context=marker.context,
            )
        self.report.captcha_detected = bool(markers)
        return len(markers)

    async def run(
        self,
        schema: FormSchema,
        prior_filled: Optional[Sequence[FilledEntry]] = None,
    ) -> FillReport:
        await self.prepare()
        fields = self.plan(schema, prior_filled)
        async for _rows in self.iter_fields(fields):
            pass
        if self.settings.detect_captcha:
            await self.record_captchas()
        self.report.entries = self.recorder.entries
        logger.info(
            "Fill pass done: %s/%s fields written, %s entries, captcha=%s",
            self.report.fields_filled,
            self.report.fields_total,
            len(self.report.entries),
            self.report.captcha_detected,
        )
        return self.report


def reserved_attributes(fields: Sequence[FieldDescriptor]) -> FrozenSet[str]:
    """Every name and id a planned field points at, including fields tagged other."""
    return frozenset(attr for descriptor in fields for attr in (descriptor.name_attr, descriptor.id_attr) if attr)


def as_document_context(target: Any, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> DocumentContext:
    if isinstance(target, DocumentContext):
        return target
    from .playwright_dom import PlaywrightContext

    return PlaywrightContext.from_page(target, timeout_ms=timeout_ms)


async def fill_contact_form(
    target: Any,
    schema: Union[FormSchema, dict, list, str],
    profile: Union[ProfileRecord, dict],
    message: Optional[str] = None,
    *,
    settings: Optional[FillSettings] = None,
    recorder: Optional[FillSummaryRecorder] = None,
    prior_filled: Optional[Sequence[FilledEntry]] = None,
) -> List[FilledEntry]:
    """Fill ``target`` (a Playwright page or a DocumentContext) and return the summary.

    Raises InvalidFormSchemaError when ``schema`` has no field list; every
    other problem is recorded per field.
    """
    parsed = FormSchema.parse(schema)
    if not isinstance(profile, ProfileRecord):
        profile = ProfileRecord.from_mapping(profile)
    settings = settings or FillSettings()
    root = as_document_context(target, timeout_ms=settings.timeout_ms)
    filler = FormFiller(root, profile, message, settings=settings, recorder=recorder)
    report = await filler.run(parsed, prior_filled)
    return report.entries
