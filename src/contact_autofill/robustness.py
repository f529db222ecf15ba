"""Robust interaction utilities shared by the Playwright adapter and the runner."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar, Union

from playwright.async_api import Error as PlaywrightError, Frame, Locator, Page, TimeoutError as PlaywrightTimeoutError

T = TypeVar("T")

DEFAULT_BACKOFFS_MS: Sequence[int] = (300, 700, 1500)

logger = logging.getLogger(__name__)

_SET_VALUE_SCRIPT = """
    (el, value) => {
        el.value = value;
        el.dispatchEvent(new Event("input", { bubbles: true }));
        el.dispatchEvent(new Event("change", { bubbles: true }));
        el.blur();
    }
"""

_SET_CHECKED_SCRIPT = """
    (el) => {
        el.checked = true;
        el.dispatchEvent(new Event("input", { bubbles: true }));
        el.dispatchEvent(new Event("change", { bubbles: true }));
        el.dispatchEvent(new Event("click", { bubbles: true }));
    }
"""


class NonFillableElementError(RuntimeError):
    """Raised when a fill targets a non-textual element."""


async def wait_for_page_quiet(target: Union[Page, Frame], timeout_ms: int) -> None:
    """Best-effort wait for a page or frame to settle before touching its fields."""
    try:
        await target.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        pass
    except PlaywrightError:
        pass

    idle_script = """
        () => {
            const w = window;
            if (!w.__autofillMutationIdle) {
                w.__autofillMutationIdle = { last: Date.now() };
                const observer = new MutationObserver(() => {
                    w.__autofillMutationIdle.last = Date.now();
                });
                observer.observe(document.documentElement, { subtree: true, childList: true, attributes: true });
            }
            return Date.now() - w.__autofillMutationIdle.last > 400;
        }
    """
    try:
        await target.wait_for_function(idle_script, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        pass
    except PlaywrightError:
        pass


async def with_retries(
    async_op: Callable[[], Awaitable[T]],
    retries: int,
    backoffs_ms: Optional[Sequence[int]] = None,
) -> T:
    """Run ``async_op`` up to ``retries`` times with backoff; re-raise the final failure."""
    attempts = max(1, retries)
    delays = list(backoffs_ms or DEFAULT_BACKOFFS_MS)
    last_error: Optional[Exception] = None

    for attempt in range(attempts):
        try:
            return await async_op()
        except Exception as exc:  # noqa: BLE001 - propagate final failure
            last_error = exc
            if attempt == attempts - 1:
                break
            delay = delays[attempt] if attempt < len(delays) else delays[-1]
            await asyncio.sleep(delay / 1000.0)

    if last_error:
        raise last_error
    raise RuntimeError("async_op completed without returning a value")


async def fill_robust(locator: Locator, value: str, timeout_ms: int) -> None:
    """Fill a text input, escalating from fill to typing to a direct value assignment."""
    info = await _describe_element(locator)
    if info and not element_supports_text_entry(info):
        logger.warning(
            "telemetry:non_text_input tag=%s type=%s role=%s editable=%s",
            info.get("tag"),
            info.get("type"),
            info.get("role"),
            info.get("contentEditable"),
        )
        raise NonFillableElementError(f"Element <{info.get('tag')}> type={info.get('type')!r} does not accept text")

    try:
        await locator.scroll_into_view_if_needed(timeout=timeout_ms)
    except PlaywrightError:
        pass

    try:
        await locator.fill(value, timeout=timeout_ms)
    except PlaywrightError as exc:
        logger.debug("locator.fill failed (%s); typing instead", exc)
        try:
            await locator.evaluate("(el) => { el.value = ''; }")
            await locator.type(value, delay=20, timeout=timeout_ms)
        except PlaywrightError as type_exc:
            logger.debug("locator.type failed (%s); assigning value directly", type_exc)
            await locator.evaluate(_SET_VALUE_SCRIPT, value)

    try:
        current = await locator.input_value(timeout=timeout_ms)
    except PlaywrightError:
        current = None

    if current is not None and current.strip() != value.strip():
        raise RuntimeError("Input value did not match expected text")


async def check_robust(locator: Locator, timeout_ms: int) -> None:
    """Check a checkbox or radio, falling back to setting ``checked`` in the page."""
    try:
        await locator.check(force=True, timeout=timeout_ms)
        return
    except PlaywrightTimeoutError:
        pass
    except PlaywrightError as exc:
        logger.debug("locator.check failed (%s); setting checked directly", exc)
    await locator.evaluate(_SET_CHECKED_SCRIPT)


async def _describe_element(locator: Locator) -> dict:
    try:
        return await locator.evaluate(
            """(el) => ({
                tag: el.tagName ? el.tagName.toLowerCase() : "",
                type: el.type || "",
                role: el.getAttribute("role") || "",
                contentEditable: el.isContentEditable || false
            })"""
        )
    except Exception:  # noqa: BLE001
        return {}


def element_supports_text_entry(info: dict) -> bool:
    tag = (info.get("tag") or "").lower()
    input_type = (info.get("type") or "").lower()
    role = (info.get("role") or "").lower()
    content_editable = bool(info.get("contentEditable"))
    if content_editable or role == "textbox":
        return True
    if tag == "textarea":
        return True
    if tag != "input":
        return False
    allowed = {"", "text", "search", "email", "url", "tel", "password", "number"}
    return input_type in allowed
