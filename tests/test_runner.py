from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.models import FilledEntry  # noqa: E402
from contact_autofill.runner import TelemetryWriter, classify_entries, slugify_url  # noqa: E402
from main import _validate_args, parse_args  # noqa: E402


def test_classify_entries() -> None:
    filled = FilledEntry(role="email", selector="#mail", value="a@b.com", order=1)
    unresolved = FilledEntry(role="other", order=2, source="unresolved")
    captcha = FilledEntry(role="captcha", selector="div.g-recaptcha", order=3, source="detected")

    assert classify_entries([filled, unresolved]) == "filled"
    assert classify_entries([unresolved]) == "fill_empty"
    assert classify_entries([]) == "fill_empty"
    assert classify_entries([filled, captcha]) == "captcha_detected"


def test_slugify_url() -> None:
    assert slugify_url("https://Example.co.jp/contact/?a=1") == "example-co-jp-contact-a-1"
    assert slugify_url("") == "page"


def test_telemetry_writer_appends_json_lines(tmp_path) -> None:
    writer = TelemetryWriter(tmp_path / "runs" / "run.jsonl")
    writer.write({"event": "attempt", "payload": {"status": "filled"}})
    writer.write({"event": "run_end"})
    writer.close()

    lines = (tmp_path / "runs" / "run.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [event["event"] for event in events] == ["attempt", "run_end"]
    assert all("timestamp" in event for event in events)


def test_cli_collects_urls_from_flags_and_file(tmp_path) -> None:
    profile = tmp_path / "sender.json"
    profile.write_text("{}", encoding="utf-8")
    urls_file = tmp_path / "urls.txt"
    urls_file.write_text("https://b.example/contact\n# skip\n\n", encoding="utf-8")

    args = parse_args(["--profile", str(profile), "--url", "https://a.example/form", "--urls-file", str(urls_file)])

    assert _validate_args(args) == ["https://a.example/form", "https://b.example/contact"]


def test_cli_rejects_missing_inputs(tmp_path) -> None:
    profile = tmp_path / "sender.json"
    profile.write_text("{}", encoding="utf-8")

    with pytest.raises(SystemExit):
        _validate_args(parse_args(["--profile", str(profile)]))
    with pytest.raises(SystemExit):
        _validate_args(parse_args(["--profile", str(tmp_path / "missing.json"), "--url", "https://a.example"]))
