from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.analyzer import (  # noqa: E402
    FormAnalyzer,
    build_prompt,
    count_fields,
    fallback_fields_from_html,
    parse_schema_text,
)
from contact_autofill.config import FORM_HTML_MAX_CHARS  # noqa: E402
from contact_autofill.models import ProfileRecord  # noqa: E402

FORM_HTML = """
<form>
  <input type="hidden" name="token" value="x">
  <input type="text" name="your_name" placeholder="お名前" required>
  <input type="email" id="mail" aria-required="true">
  <textarea name="body"></textarea>
  <input type="submit" value="送信">
</form>
"""


class _FakeCompletions:
    def __init__(self, content: str) -> None:
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(content: str):
    completions = _FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_fallback_extracts_user_fields_as_other() -> None:
    payload = fallback_fields_from_html(FORM_HTML)

    fields = payload["fields"]
    assert [field["type"] for field in fields] == ["text", "email", "textarea"]
    assert fields[0]["label"] == "お名前"
    assert fields[0]["required"] is True
    assert fields[1]["required"] is True
    assert fields[2]["label"] == "body"
    assert {field["role"] for field in fields} == {"other"}


def test_fallback_returns_none_without_fields() -> None:
    assert fallback_fields_from_html("<div>no form</div>") is None


def test_parse_handles_code_fences_and_prose() -> None:
    fenced = '```json\n{"fields": [{"role": "email", "type": "email", "nameAttr": "mail"}]}\n```'
    assert parse_schema_text(fenced).fields[0].primary_role == "email"

    chatty = 'Here you go: {"fields": [{"role": "name"}]} Hope this helps.'
    assert parse_schema_text(chatty).fields[0].primary_role == "name"


def test_parse_recovers_fields_array_from_broken_json() -> None:
    broken = '{"fields": [{"role": "email", "type": "email"}], "note": oops}'
    schema = parse_schema_text(broken)
    assert [field.primary_role for field in schema.fields] == ["email"]


def test_parse_recovers_individual_objects() -> None:
    broken = '{"fields": [{"role": "email"}, {"role": broken}, {"role": "name"}]}'
    schema = parse_schema_text(broken)
    assert [field.primary_role for field in schema.fields] == ["email", "name"]


def test_empty_fields_with_known_inputs_use_html_fallback() -> None:
    schema = parse_schema_text('{"fields": []}', FORM_HTML, count_fields(FORM_HTML))
    assert len(schema.fields) == 3
    assert all(field.primary_role == "other" for field in schema.fields)


def test_garbage_without_inputs_gives_none() -> None:
    assert parse_schema_text("I cannot help with that", "", 0) is None
    assert parse_schema_text("", "", 0) is None


def test_prompt_truncates_html_and_lists_roles() -> None:
    html = "<form>" + "x" * (FORM_HTML_MAX_CHARS + 50) + "</form>"
    prompt = build_prompt(html, ProfileRecord(values={"email": "a@b.com"}), "Hello", 3)

    assert "</form>" not in prompt
    assert '"inquiryType"' in prompt
    assert "- email: a@b.com" in prompt
    assert "roughly 3" in prompt


@pytest.mark.asyncio
async def test_analyzer_classifies_html_with_chat_completion() -> None:
    client, completions = _client('{"fields": [{"role": "email", "type": "email", "idAttr": "mail"}]}')
    analyzer = FormAnalyzer(client, model="test-model")

    schema = await analyzer.classify_html(FORM_HTML)

    assert schema.fields[0].id_attr == "mail"
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["messages"][0]["role"] == "system"


@pytest.mark.asyncio
async def test_analyzer_requires_client() -> None:
    with pytest.raises(RuntimeError):
        await FormAnalyzer(None).classify_html(FORM_HTML)
