"""Type-specific fillers: text, checkbox, radio and select.

Every filler walks the candidate selectors across all document contexts and
stops at the first element it manages to write. Anything that goes wrong
with one candidate (detached element, refused write) abandons that
candidate only; the next one is tried. When nothing can be written the
field is recorded as unresolved instead of raising.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .captcha import looks_like_captcha
from .dom import DocumentContext, DomElement, ElementInfo
from .frames import iter_candidates
from .matching import is_consent_text, match_choice, match_select_option
from .models import FieldDescriptor
from .roles import ResolvedValue
from .selector_resolver import id_selector, quote_attr, type_scope
from .summary import FillOutcome, FillSummaryRecorder

logger = logging.getLogger(__name__)

CONSENT_SCOPE = 'input[type="checkbox"], input[type="radio"]'

# Input types the page-wide fallback may use for each declared field type.
FALLBACK_INPUT_TYPES: Dict[str, FrozenSet[str]] = {
    "text": frozenset({"text", "", "search"}),
    "email": frozenset({"email"}),
    "tel": frozenset({"tel"}),
    "number": frozenset({"number"}),
}


@dataclass(frozen=True)
class FillRequest:
    field: FieldDescriptor
    selectors: Tuple[str, ...]
    resolved: ResolvedValue
    order: int
    agreement: bool = False
    # name/id attributes owned by schema fields; the page-wide fallback leaves them alone.
    reserved: FrozenSet[str] = frozenset()

    @property
    def value(self) -> str:
        return self.resolved.write_value


async def _describe(element: DomElement, context: DocumentContext) -> Optional[ElementInfo]:
    try:
        return await element.info()
    except Exception as exc:  # noqa: BLE001 - element detached between query and read
        logger.debug("Could not describe element in %s: %s", context.name, exc)
        return None


def element_selector(info: ElementInfo, field_type: str, fallback: str, index: int) -> str:
    """A selector that points back at one concrete element for the audit trail."""
    scope = type_scope(field_type)
    if info.id:
        return id_selector(info.id)
    if info.name and info.value and field_type in {"checkbox", "radio"}:
        return f"{scope}[name={quote_attr(info.name)}][value={quote_attr(info.value)}]"
    if info.name:
        return f"{scope}[name={quote_attr(info.name)}]"
    return f"{fallback} >> nth={index}"


def _choice_caption(info: ElementInfo) -> str:
    return info.caption or "checked"


class BaseFiller(ABC):
    """TRY_SELECTOR -> MATCH_CHOICE -> WRITE -> RECORD, shared by all field types."""

    kind = "base"

    def __init__(self, contexts: Sequence[DocumentContext]) -> None:
        self.contexts = list(contexts)

    async def run(self, request: FillRequest, recorder: FillSummaryRecorder) -> bool:
        outcome = await self.attempt(request)
        if outcome is None:
            outcome = await self.fallback(request)
        if outcome is None:
            recorder.record_unresolved(request.field, request.order, reason=f"{self.kind} unmatched")
            return False
        recorder.record_success(request.field, request.order, request.resolved, outcome)
        return True

    @abstractmethod
    async def attempt(self, request: FillRequest) -> Optional[FillOutcome]:
        raise NotImplementedError

    async def fallback(self, request: FillRequest) -> Optional[FillOutcome]:
        return None

    def _write_failed(self, request: FillRequest, selector: str, context: DocumentContext, exc: Exception) -> None:
        logger.warning(
            "telemetry:write_failed kind=%s order=%s selector=%s context=%s error=%s",
            self.kind,
            request.order,
            selector,
            context.name,
            exc,
        )


class TextFiller(BaseFiller):
    kind = "text"

    async def attempt(self, request: FillRequest) -> Optional[FillOutcome]:
        value = request.value
        if not value.strip():
            return None
        async for candidate in iter_candidates(self.contexts, request.selectors):
            elements: List[Tuple[DomElement, ElementInfo]] = []
            for element in candidate.elements:
                info = await _describe(element, candidate.context)
                if info is None or not info.usable or info.readonly:
                    continue
                elements.append((element, info))
            # Visible inputs first; hidden duplicates are often honeypots.
            elements.sort(key=lambda pair: not pair[1].visible)
            for element, _info in elements:
                try:
                    await element.fill(value)
                except Exception as exc:  # noqa: BLE001 - abandon this candidate
                    self._write_failed(request, candidate.selector, candidate.context, exc)
                    break
                return FillOutcome(selector=candidate.selector, value=value, context=candidate.context.name)
        return None

    async def fallback(self, request: FillRequest) -> Optional[FillOutcome]:
        """Fill the first empty input of the same kind that no schema field claims."""
        value = request.value
        if not value.strip():
            return None
        field_type = request.field.type
        if field_type == "textarea":
            scope, allowed = "textarea", None
        else:
            scope, allowed = "input", FALLBACK_INPUT_TYPES.get(field_type, FALLBACK_INPUT_TYPES["text"])

        for context in self.contexts:
            try:
                elements = await context.query_all(scope)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Fallback query failed in %s: %s", context.name, exc)
                continue
            for idx, element in enumerate(elements):
                info = await _describe(element, context)
                if info is None or not info.usable or info.readonly or not info.visible:
                    continue
                if allowed is not None and info.input_type not in allowed:
                    continue
                if info.value.strip() or looks_like_captcha(info):
                    continue
                if (info.name and info.name in request.reserved) or (info.id and info.id in request.reserved):
                    continue
                try:
                    await element.fill(value)
                except Exception as exc:  # noqa: BLE001
                    self._write_failed(request, f"{scope} >> nth={idx}", context, exc)
                    continue
                selector = element_selector(info, field_type, scope, idx)
                logger.info("telemetry:text_fallback order=%s selector=%s context=%s", request.order, selector, context.name)
                return FillOutcome(selector=selector, value=value, context=context.name, source="text-fallback")
        return None


async def scan_consent(contexts: Sequence[DocumentContext], order: int = 0) -> Optional[FillOutcome]:
    """Check the first consent control on the page, ignoring the field's own selectors."""
    for context in contexts:
        try:
            elements = await context.query_all(CONSENT_SCOPE)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Consent scan failed in %s: %s", context.name, exc)
            continue
        for idx, element in enumerate(elements):
            info = await _describe(element, context)
            if info is None or not info.usable:
                continue
            if not is_consent_text(info.label):
                continue
            try:
                if not info.checked:
                    await element.check()
            except Exception as exc:  # noqa: BLE001
                logger.warning("telemetry:consent_failed order=%s context=%s error=%s", order, context.name, exc)
                continue
            field_type = info.input_type if info.input_type in {"checkbox", "radio"} else "checkbox"
            return FillOutcome(
                selector=element_selector(info, field_type, CONSENT_SCOPE, idx),
                value=_choice_caption(info),
                context=context.name,
                source="consent",
                option_value=info.value,
            )
    return None


class _ChoiceFiller(BaseFiller):
    """Shared candidate walk for checkbox and radio groups."""

    match_values = False
    consent_fallback = False
    first_enabled_fallback = False

    def desired(self, request: FillRequest) -> str:
        return request.value

    async def attempt(self, request: FillRequest) -> Optional[FillOutcome]:
        async for candidate in iter_candidates(self.contexts, request.selectors):
            described: List[Tuple[DomElement, ElementInfo]] = []
            for element in candidate.elements:
                info = await _describe(element, candidate.context)
                if info is not None:
                    described.append((element, info))
            if not described:
                continue
            infos = [info for _, info in described]
            match = match_choice(
                self.desired(request),
                [info.caption for info in infos],
                [info.value for info in infos],
                [info.usable for info in infos],
                match_values=self.match_values,
                consent_fallback=self.consent_fallback or request.agreement,
                first_enabled_fallback=self.first_enabled_fallback,
            )
            if match is None:
                continue
            element, info = described[match.index]
            try:
                if not info.checked:
                    await element.check()
            except Exception as exc:  # noqa: BLE001
                self._write_failed(request, candidate.selector, candidate.context, exc)
                continue
            logger.debug("%s match order=%s reason=%s", self.kind, request.order, match.reason)
            return FillOutcome(
                selector=candidate.selector,
                value=_choice_caption(info),
                context=candidate.context.name,
                source="consent" if match.reason == "consent" else "selector",
                option_value=info.value,
            )
        return None


class CheckboxFiller(_ChoiceFiller):
    kind = "checkbox"
    first_enabled_fallback = True

    def desired(self, request: FillRequest) -> str:
        return request.value or request.field.label

    async def attempt(self, request: FillRequest) -> Optional[FillOutcome]:
        if request.agreement:
            outcome = await scan_consent(self.contexts, request.order)
            if outcome is not None:
                return outcome
        return await super().attempt(request)


class RadioFiller(_ChoiceFiller):
    kind = "radio"
    match_values = True
    consent_fallback = True

    async def fallback(self, request: FillRequest) -> Optional[FillOutcome]:
        if request.agreement:
            return await scan_consent(self.contexts, request.order)
        return None


class SelectFiller(BaseFiller):
    kind = "select"

    async def attempt(self, request: FillRequest) -> Optional[FillOutcome]:
        async for candidate in iter_candidates(self.contexts, request.selectors):
            for element in candidate.elements:
                info = await _describe(element, candidate.context)
                if info is None or not info.usable:
                    continue
                try:
                    options = await element.options()
                except Exception as exc:  # noqa: BLE001
                    logger.debug("Could not read options in %s: %s", candidate.context.name, exc)
                    continue
                match = match_select_option(request.value, options)
                if match is None:
                    continue
                option = options[match.index]
                try:
                    await element.select_option(option.value)
                except Exception as exc:  # noqa: BLE001
                    self._write_failed(request, candidate.selector, candidate.context, exc)
                    break
                source = "selector" if match.reason.startswith("label") else "option-fallback"
                return FillOutcome(
                    selector=candidate.selector,
                    value=option.text,
                    context=candidate.context.name,
                    source=source,
                    option_value=option.value,
                )
        return None


FILLER_TYPES = {
    "checkbox": CheckboxFiller,
    "radio": RadioFiller,
    "select": SelectFiller,
}


def build_fillers(contexts: Sequence[DocumentContext]) -> Dict[str, BaseFiller]:
    fillers: Dict[str, BaseFiller] = {kind: cls(contexts) for kind, cls in FILLER_TYPES.items()}
    fillers["text"] = TextFiller(contexts)
    return fillers
