"""Run loop: open each contact page, classify its form, fill it, capture the result.

Forms are never submitted.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI
from playwright.async_api import Browser, Page, async_playwright

from .analyzer import FormAnalyzer
from .capturer import capture_state
from .config import (
    CONTACT_DELAY_RANGE_S,
    DATASET_ROOT,
    DEFAULT_BROWSER,
    DEFAULT_TIMEOUT_MS,
    NAVIGATION_TIMEOUT_MS,
    OPENAI_MODEL,
    VIEWPORT,
    get_openai_api_key,
)
from .engine import FillSettings, fill_contact_form
from .models import ContactAttempt, FilledEntry, FormSchema, InvalidFormSchemaError, ProfileRecord
from .robustness import wait_for_page_quiet, with_retries
from .roles import CAPTCHA_ROLE
from .summary import entries_for_log

logger = logging.getLogger(__name__)


class TelemetryWriter:
    """Append structured events to a run.jsonl file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fp = path.open("a", encoding="utf-8")

    def write(self, event: Dict[str, Any]) -> None:
        payload = dict(event)
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        self._fp.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._fp.flush()

    def close(self) -> None:
        try:
            self._fp.close()
        except Exception:  # noqa: BLE001
            pass


def classify_entries(entries: Sequence[FilledEntry]) -> str:
    """Map a fill summary to the attempt status recorded for the contact."""
    if any(entry.role == CAPTCHA_ROLE for entry in entries):
        return "captcha_detected"
    if not any(entry.selector and entry.source != "unresolved" for entry in entries):
        return "fill_empty"
    return "filled"


def slugify_url(url: str, limit: int = 60) -> str:
    stripped = re.sub(r"^[a-z]+://", "", url.strip().lower())
    slug = re.sub(r"[^a-z0-9]+", "-", stripped).strip("-")
    return slug[:limit] or "page"


def load_schema_file(path: Path) -> FormSchema:
    return FormSchema.parse(Path(path).read_text(encoding="utf-8"))


async def _launch_browser(playwright, browser_choice: str, headless: bool) -> Browser:
    browser_type = getattr(playwright, browser_choice, None)
    if browser_type is None:
        raise ValueError(f"Unsupported browser engine: {browser_choice}")
    return await browser_type.launch(headless=headless)


async def attempt_contact(
    page: Page,
    url: str,
    profile: ProfileRecord,
    message: Optional[str],
    *,
    attempt_dir: Path,
    schema: Optional[FormSchema] = None,
    analyzer: Optional[FormAnalyzer] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    max_retries: int = 3,
) -> ContactAttempt:
    logger.info("Contact page: %s", url)
    try:
        await with_retries(
            lambda: page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS),
            retries=max_retries,
        )
    except Exception as exc:  # noqa: BLE001 - recorded as the attempt status
        logger.warning("telemetry:navigation_failed url=%s error=%s", url, exc)
        return ContactAttempt(url=url, status="navigation_error", error=str(exc))

    try:
        await wait_for_page_quiet(page, timeout_ms)
        if schema is None and analyzer is not None:
            schema = await analyzer.analyze(page, profile, message)
        if schema is None:
            logger.warning("No form schema for %s", url)
            return ContactAttempt(url=url, status="form_schema_error", error="form schema unavailable")

        entries = await fill_contact_form(
            page,
            schema,
            profile,
            message,
            settings=FillSettings(timeout_ms=timeout_ms),
        )
        status = classify_entries(entries)
        await capture_state(
            page,
            attempt_dir,
            "filled",
            extra={"status": status, "url": url},
            entries=entries_for_log(entries, schema),
        )
        return ContactAttempt(url=url, status=status, entries=entries, artifact_dir=str(attempt_dir))
    except InvalidFormSchemaError as exc:
        logger.warning("Invalid form schema for %s: %s", url, exc)
        return ContactAttempt(url=url, status="form_schema_error", error=str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Contact attempt failed for %s", url)
        return ContactAttempt(url=url, status="exception", error=str(exc))


async def run_fill_task(
    urls: Sequence[str],
    profile: ProfileRecord,
    message: Optional[str] = None,
    *,
    schema_path: Optional[Path] = None,
    out_dir: Optional[Path] = None,
    headless: bool = False,
    browser: Optional[str] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    max_retries: int = 3,
) -> List[ContactAttempt]:
    run_stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    run_dir = Path(out_dir or DATASET_ROOT) / f"run-{run_stamp}"
    telemetry = TelemetryWriter(run_dir / "run.jsonl")

    schema: Optional[FormSchema] = None
    analyzer: Optional[FormAnalyzer] = None
    attempts: List[ContactAttempt] = []

    if schema_path:
        try:
            schema = load_schema_file(schema_path)
        except InvalidFormSchemaError as exc:
            logger.error("Schema file %s is invalid: %s", schema_path, exc)
            for url in urls:
                attempt = ContactAttempt(url=url, status="form_schema_error", error=str(exc))
                telemetry.write({"event": "attempt", "payload": attempt.model_dump(mode="json")})
                attempts.append(attempt)
            telemetry.close()
            return attempts
    else:
        api_key = get_openai_api_key()
        if api_key:
            analyzer = FormAnalyzer(AsyncOpenAI(api_key=api_key), model=OPENAI_MODEL)
            logger.info("Form classifier enabled (%s)", OPENAI_MODEL)
        else:
            logger.warning("OPENAI_API_KEY missing and no schema file; every attempt will lack a schema")

    telemetry.write({"event": "run_start", "payload": {"urls": list(urls), "headless": headless}})
    try:
        async with async_playwright() as pw:
            engine = await _launch_browser(pw, (browser or DEFAULT_BROWSER).lower(), headless)
            try:
                context = await engine.new_context(viewport=VIEWPORT)
                page = await context.new_page()
                for idx, url in enumerate(urls):
                    attempt = await attempt_contact(
                        page,
                        url,
                        profile,
                        message,
                        attempt_dir=run_dir / f"{idx + 1:03d}-{slugify_url(url)}",
                        schema=schema,
                        analyzer=analyzer,
                        timeout_ms=timeout_ms,
                        max_retries=max_retries,
                    )
                    attempts.append(attempt)
                    telemetry.write({"event": "attempt", "payload": attempt.model_dump(mode="json", by_alias=True)})
                    logger.info("Attempt %s: %s (%s entries)", url, attempt.status, len(attempt.entries))
                    if idx < len(urls) - 1:
                        await asyncio.sleep(random.uniform(*CONTACT_DELAY_RANGE_S))
            finally:
                await engine.close()
    finally:
        telemetry.write({"event": "run_end", "payload": {"attempts": len(attempts)}})
        telemetry.close()
    return attempts
