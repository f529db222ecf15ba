"""Text matching helpers for choice fields: labels, consent wording and placeholders."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .dom import OptionInfo

CONSENT_KEYWORDS: Tuple[str, ...] = (
    "同意",
    "承諾",
    "プライバシー",
    "個人情報",
    "利用規約",
    "agree",
    "consent",
    "privacy",
    "terms",
    "accept",
)

# Options that mention consent only to refuse it.
CONSENT_REFUSALS: Tuple[str, ...] = (
    "同意しない",
    "同意しません",
    "同意できない",
    "disagree",
    "do not agree",
    "don't agree",
    "decline",
)

_PLACEHOLDER_PATTERN = re.compile(
    r"選択してください|選択して下さい|お選びください|お選び下さい|ご選択ください|選んでください|未選択"
    r"|please\s+(select|choose)|select\s+one|^(選択|select|choose)$|^[-—–ー―\s]+$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ChoiceMatch:
    index: int
    reason: str


def normalize_text(text: Optional[str]) -> str:
    """NFKC-normalise, collapse whitespace and lower-case for comparisons."""
    normalized = unicodedata.normalize("NFKC", text or "")
    return re.sub(r"\s+", " ", normalized).strip().lower()


def is_consent_text(text: Optional[str]) -> bool:
    normalized = normalize_text(text)
    if not normalized:
        return False
    if any(refusal in normalized for refusal in CONSENT_REFUSALS):
        return False
    return any(keyword in normalized for keyword in CONSENT_KEYWORDS)


def is_placeholder_option(option: OptionInfo) -> bool:
    text = normalize_text(option.text)
    if not text:
        return True
    return bool(_PLACEHOLDER_PATTERN.search(text))


def match_choice(
    desired: str,
    captions: Sequence[str],
    values: Sequence[str],
    enabled: Sequence[bool],
    *,
    match_values: bool = False,
    consent_fallback: bool = False,
    first_enabled_fallback: bool = False,
) -> Optional[ChoiceMatch]:
    """Pick one option index.

    Precedence: exact caption, caption substring, then (optionally) exact
    value, value substring, consent wording and the first enabled option.
    Substring ties resolve to the first option in DOM order.
    """
    target = normalize_text(desired)
    norm_captions = [normalize_text(caption) for caption in captions]
    norm_values = [normalize_text(value) for value in values]
    candidates = [idx for idx, is_enabled in enumerate(enabled) if is_enabled]

    if target:
        for idx in candidates:
            if norm_captions[idx] == target:
                return ChoiceMatch(idx, "label-exact")
        for idx in candidates:
            if norm_captions[idx] and target in norm_captions[idx]:
                return ChoiceMatch(idx, "label-substring")
        if match_values:
            for idx in candidates:
                if norm_values[idx] == target:
                    return ChoiceMatch(idx, "value-exact")
            for idx in candidates:
                if norm_values[idx] and target in norm_values[idx]:
                    return ChoiceMatch(idx, "value-substring")

    if consent_fallback:
        for idx in candidates:
            if is_consent_text(captions[idx]):
                return ChoiceMatch(idx, "consent")

    if first_enabled_fallback and candidates:
        return ChoiceMatch(candidates[0], "first-enabled")
    return None


def match_select_option(desired: str, options: Sequence[OptionInfo]) -> Optional[ChoiceMatch]:
    """Exact text, then substring text, then the first non-placeholder option."""
    texts = [option.text for option in options]
    selectable = [not option.disabled and not is_placeholder_option(option) for option in options]
    match = match_choice(desired, texts, [option.value for option in options], selectable)
    if match is not None:
        return match
    for idx, is_selectable in enumerate(selectable):
        if is_selectable:
            return ChoiceMatch(idx, "first-non-placeholder")
    return None
