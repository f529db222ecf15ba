"""Store what a contact form looked like after the fill pass."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, Page

logger = logging.getLogger(__name__)


async def capture_state(
    page: Page,
    out_dir: Path,
    name: str,
    extra: Optional[Dict[str, Any]] = None,
    entries: Optional[List[Dict[str, Any]]] = None,
) -> Path:
    """Write ``<name>.png``, ``<name>.html`` and ``<name>.json``; capture errors land in the metadata."""
    out_dir.mkdir(parents=True, exist_ok=True)

    metadata: Dict[str, Any] = {
        "name": name,
        "url": page.url if hasattr(page, "url") else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "extra": dict(extra or {}),
        "entries": list(entries or []),
    }

    try:
        await page.screenshot(path=str(out_dir / f"{name}.png"), full_page=True)
    except PlaywrightError as exc:
        metadata["extra"]["screenshot_error"] = str(exc)

    try:
        html = await page.content()
        (out_dir / f"{name}.html").write_text(html, encoding="utf-8")
    except PlaywrightError as exc:
        metadata["extra"]["html_error"] = str(exc)

    meta_path = out_dir / f"{name}.json"
    meta_path.write_text(json.dumps(metadata, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("Captured %s into %s", name, out_dir)
    return meta_path
