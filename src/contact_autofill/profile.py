"""Load sender profiles from JSON objects or two-column key/value CSV sheets."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .models import ProfileRecord

logger = logging.getLogger(__name__)

_HEADER_KEYS = {"key", "field", "項目"}


def load_profile(path: Path, message: Optional[str] = None) -> ProfileRecord:
    """Read ``path`` as a JSON object or a ``key,value`` CSV; a ``message`` key becomes the default message."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Profile JSON must be an object: {path}")
        values = payload
    else:
        values = _read_key_value_csv(path)
    profile = ProfileRecord.from_mapping(values, message=message)
    logger.info("Loaded profile %s (%s keys)", path, len(profile.values))
    return profile


def _read_key_value_csv(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    with path.open(encoding="utf-8-sig", newline="") as handle:
        for idx, row in enumerate(csv.reader(handle)):
            if not row or not row[0].strip():
                continue
            key = row[0].strip()
            if idx == 0 and key.lower() in _HEADER_KEYS:
                continue
            if key.startswith("#"):
                continue
            values[key] = row[1] if len(row) > 1 else ""
    return values


def merge_profiles(base: ProfileRecord, override: Optional[ProfileRecord]) -> ProfileRecord:
    """Per key, a non-blank value from ``override`` wins."""
    if override is None:
        return base
    values = dict(base.values)
    for key, value in override.values.items():
        if value.strip():
            values[key] = value
    message = override.message if override.message and override.message.strip() else base.message
    return ProfileRecord(values=values, message=message)
