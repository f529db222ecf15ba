"""Detect anti-bot challenges that need a human before the form can be sent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .dom import DocumentContext, ElementInfo
from .matching import normalize_text
from .selector_resolver import id_selector, quote_attr

logger = logging.getLogger(__name__)

MANUAL_ACTION_VALUE = "manual_action_required"

RECAPTCHA_SELECTORS: Tuple[str, ...] = (
    'iframe[src*="google.com/recaptcha"]',
    'iframe[src*="recaptcha.net/recaptcha"]',
    "div.g-recaptcha",
    "div.recaptcha",
    '[aria-label*="not a robot" i]',
)

IMAGE_CAPTCHA_KEYWORDS: Tuple[str, ...] = (
    "captcha",
    "認証コード",
    "確認コード",
    "セキュリティコード",
    "画像認証",
    "画像の文字",
    "画像に表示",
)

_TEXT_INPUTS = 'input[type="text"], input:not([type])'


@dataclass(frozen=True)
class CaptchaMarker:
    kind: str
    selector: str
    context: str
    label: str = ""
    name: str = ""
    id: str = ""


def looks_like_captcha(info: ElementInfo) -> bool:
    haystack = normalize_text(" ".join([info.name, info.id, info.placeholder, info.label]))
    return any(keyword in haystack for keyword in IMAGE_CAPTCHA_KEYWORDS)


async def detect_captchas(contexts: Sequence[DocumentContext]) -> List[CaptchaMarker]:
    """At most one reCAPTCHA marker per context, plus every image-captcha text input."""
    markers: List[CaptchaMarker] = []
    for context in contexts:
        for selector in RECAPTCHA_SELECTORS:
            try:
                found = await context.query_all(selector)
            except Exception as exc:  # noqa: BLE001 - unsupported selector in this context
                logger.debug("Captcha probe %s failed in %s: %s", selector, context.name, exc)
                continue
            if found:
                markers.append(CaptchaMarker(kind="recaptcha", selector=selector, context=context.name, label="reCAPTCHA"))
                break

        try:
            inputs = await context.query_all(_TEXT_INPUTS)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Captcha input probe failed in %s: %s", context.name, exc)
            continue
        for element in inputs:
            try:
                info = await element.info()
            except Exception as exc:  # noqa: BLE001 - detached element
                logger.debug("Could not describe input in %s: %s", context.name, exc)
                continue
            if not looks_like_captcha(info):
                continue
            if info.id:
                selector = id_selector(info.id)
            elif info.name:
                selector = f"input[name={quote_attr(info.name)}]"
            else:
                selector = _TEXT_INPUTS
            markers.append(
                CaptchaMarker(
                    kind="image",
                    selector=selector,
                    context=context.name,
                    label=info.label or info.placeholder,
                    name=info.name,
                    id=info.id,
                )
            )

    if markers:
        logger.warning(
            "telemetry:captcha_detected count=%s contexts=%s",
            len(markers),
            ",".join(sorted({marker.context for marker in markers})),
        )
    return markers
