from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.robustness import element_supports_text_entry, with_retries  # noqa: E402


@pytest.mark.asyncio
async def test_with_retries_returns_after_transient_failures() -> None:
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise RuntimeError("net::ERR_CONNECTION_RESET")
        return "ok"

    assert await with_retries(flaky, retries=3, backoffs_ms=[0, 0]) == "ok"
    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_with_retries_reraises_last_failure() -> None:
    async def always_fails() -> None:
        raise TimeoutError("navigation timeout")

    with pytest.raises(TimeoutError):
        await with_retries(always_fails, retries=2, backoffs_ms=[0])


def test_text_entry_support() -> None:
    assert element_supports_text_entry({"tag": "input", "type": "email"})
    assert element_supports_text_entry({"tag": "textarea"})
    assert element_supports_text_entry({"tag": "div", "contentEditable": True})
    assert not element_supports_text_entry({"tag": "input", "type": "checkbox"})
    assert not element_supports_text_entry({"tag": "select"})
