"""Playwright-backed implementation of the DOM capability."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from playwright.async_api import Error as PlaywrightError, Frame, Locator, Page

from .config import DEFAULT_TIMEOUT_MS
from .dom import DocumentContext, DomElement, ElementInfo, OptionInfo
from .robustness import check_robust, fill_robust, wait_for_page_quiet

logger = logging.getLogger(__name__)

_DESCRIBE_SCRIPT = """
    (el) => {
        const clean = (text) => (text || "").replace(/\\s+/g, " ").trim();
        const labelText = () => {
            if (el.id) {
                const escaped = window.CSS && CSS.escape ? CSS.escape(el.id) : el.id;
                const byFor = document.querySelector(`label[for="${escaped}"]`);
                if (byFor) return clean(byFor.innerText || byFor.textContent);
            }
            const parent = el.closest("label");
            if (parent) return clean(parent.innerText || parent.textContent);
            const aria = el.getAttribute("aria-label");
            if (aria) return clean(aria);
            const type = (el.type || "").toLowerCase();
            if (type === "checkbox" || type === "radio") {
                let sibling = el.nextSibling;
                while (sibling) {
                    const text = clean(sibling.textContent);
                    if (text) return text;
                    sibling = sibling.nextSibling;
                }
            }
            return "";
        };
        const style = window.getComputedStyle(el);
        const rect = el.getBoundingClientRect();
        return {
            tag: el.tagName ? el.tagName.toLowerCase() : "",
            type: (el.getAttribute("type") || (el.tagName === "INPUT" ? "text" : "")).toLowerCase(),
            name: el.getAttribute("name") || "",
            id: el.id || "",
            value: typeof el.value === "string" ? el.value : "",
            label: labelText(),
            placeholder: el.getAttribute("placeholder") || "",
            disabled: Boolean(el.disabled) || el.getAttribute("aria-disabled") === "true",
            readonly: Boolean(el.readOnly),
            checked: Boolean(el.checked),
            visible: Boolean(style && style.display !== "none" && style.visibility !== "hidden" && rect.width > 0 && rect.height > 0),
        };
    }
"""

_OPTIONS_SCRIPT = """
    (el) => Array.from(el.options || []).map((o) => ({
        text: (o.text || o.textContent || "").replace(/\\s+/g, " ").trim(),
        value: o.value || "",
        disabled: Boolean(o.disabled),
    }))
"""


class PlaywrightElement(DomElement):
    def __init__(self, locator: Locator, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.locator = locator
        self.timeout_ms = timeout_ms

    async def info(self) -> ElementInfo:
        payload: Dict[str, Any] = await self.locator.evaluate(_DESCRIBE_SCRIPT)
        return ElementInfo(
            tag=payload.get("tag") or "",
            input_type=payload.get("type") or "",
            name=payload.get("name") or "",
            id=payload.get("id") or "",
            value=payload.get("value") or "",
            label=payload.get("label") or "",
            placeholder=payload.get("placeholder") or "",
            disabled=bool(payload.get("disabled")),
            readonly=bool(payload.get("readonly")),
            checked=bool(payload.get("checked")),
            visible=bool(payload.get("visible", True)),
        )

    async def fill(self, value: str) -> None:
        await fill_robust(self.locator, value, timeout_ms=self.timeout_ms)

    async def check(self) -> None:
        await check_robust(self.locator, timeout_ms=self.timeout_ms)

    async def select_option(self, value: str) -> None:
        await self.locator.select_option(value=value, timeout=self.timeout_ms)

    async def options(self) -> List[OptionInfo]:
        payload = await self.locator.evaluate(_OPTIONS_SCRIPT)
        return [
            OptionInfo(text=entry.get("text") or "", value=entry.get("value") or "", disabled=bool(entry.get("disabled")))
            for entry in payload or []
            if isinstance(entry, dict)
        ]


class PlaywrightContext(DocumentContext):
    def __init__(self, frame: Frame, name: str = "main", timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.frame = frame
        self.name = name
        self.timeout_ms = timeout_ms

    @classmethod
    def from_page(cls, page: Page, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> "PlaywrightContext":
        return cls(page.main_frame, name="main", timeout_ms=timeout_ms)

    async def query_all(self, selector: str) -> List[DomElement]:
        locator = self.frame.locator(selector)
        count = await locator.count()
        return [PlaywrightElement(locator.nth(idx), timeout_ms=self.timeout_ms) for idx in range(count)]

    async def children(self) -> List[DocumentContext]:
        contexts: List[DocumentContext] = []
        for idx, child in enumerate(self.frame.child_frames):
            if child.is_detached():
                continue
            label = child.name or f"frame[{idx}]"
            contexts.append(PlaywrightContext(child, name=f"{self.name}>{label}", timeout_ms=self.timeout_ms))
        return contexts

    async def settle(self, timeout_ms: int) -> None:
        try:
            await wait_for_page_quiet(self.frame, timeout_ms)
        except PlaywrightError as exc:
            logger.debug("Settle wait failed for %s: %s", self.name, exc)
