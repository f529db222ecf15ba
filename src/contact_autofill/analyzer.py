"""Ask a language model to classify the fields of a contact form."""

from __future__ import annotations

import json
import logging
import re
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple, Union

from openai import AsyncOpenAI
from playwright.async_api import Error as PlaywrightError, Frame, Page

from .config import FORM_HTML_MAX_CHARS, OPENAI_MODEL
from .models import FormSchema, ProfileRecord
from .roles import AGREEMENT_ROLE, KNOWN_ROLES, OTHER_ROLE

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You analyse HTML contact forms, mostly on Japanese websites. "
    "You return a single JSON object describing the fields a person fills in, and nothing else."
)

_COLLECT_SCRIPT = """
    () => {
        for (const form of Array.from(document.querySelectorAll("form"))) {
            if (form.closest("header, nav")) continue;
            const html = form.outerHTML;
            if (html && html.trim()) return html;
        }
        const loose = document.querySelectorAll(
            "main input, main textarea, main select, body > input, body > textarea, body > select"
        );
        return Array.from(loose).map((el) => el.outerHTML).join("\\n");
    }
"""

_FIELD_TAG = re.compile(r"<(input|textarea|select)\b([^>]*)>", re.IGNORECASE)
_IGNORED_INPUT_TYPES = re.compile(r"hidden|submit|reset|button|image", re.IGNORECASE)
_FLAT_OBJECT = re.compile(r"\{[^{}]*\}")
_FIRST_OBJECT = re.compile(r"\{[\s\S]*\}")

PROMPT_ROLES = [role for role in KNOWN_ROLES if role not in {OTHER_ROLE, "companyPhone"}]


def count_fields(html: str) -> int:
    return len(re.findall(r"<input|<textarea|<select", html or "", re.IGNORECASE))


async def collect_form_html(page: Union[Page, Frame]) -> Tuple[str, int]:
    """Return the first usable form's HTML (searching frames breadth-first) and its field count."""
    root = page.main_frame if isinstance(page, Page) else page
    queue: Deque[Frame] = deque([root])
    while queue:
        frame = queue.popleft()
        try:
            html = await frame.evaluate(_COLLECT_SCRIPT)
        except PlaywrightError as exc:
            logger.debug("Could not read form HTML from frame %s: %s", frame.name or frame.url, exc)
            html = ""
        if html and html.strip():
            if not html.lstrip().lower().startswith("<form"):
                html = f"<form>\n{html}\n</form>"
            count = count_fields(html)
            logger.info("Form HTML found in frame %s (%s chars, %s fields)", frame.name or frame.url, len(html), count)
            return html, count
        queue.extend(child for child in frame.child_frames if not child.is_detached())
    logger.warning("No form fields found in any frame")
    return "", 0


def _sender_context(profile: Optional[ProfileRecord], message: Optional[str]) -> str:
    lines: List[str] = []
    if profile is not None:
        entries = [(key, value) for key, value in profile.values.items() if value.strip()]
        if entries:
            lines.append("Sender info:")
            lines.extend(f"- {key}: {value}" for key, value in entries)
    if message and message.strip():
        lines.append("Message:")
        lines.append(message[:120] + ("..." if len(message) > 120 else ""))
    return "\n".join(lines)


def build_prompt(
    html: str,
    profile: Optional[ProfileRecord] = None,
    message: Optional[str] = None,
    field_count: Optional[int] = None,
) -> str:
    trimmed = html[:FORM_HTML_MAX_CHARS]
    count_line = (
        f"The HTML contains roughly {field_count} input/textarea/select elements.\n" if field_count else ""
    )
    roles = ", ".join(f'"{role}"' for role in PROMPT_ROLES)
    sender = _sender_context(profile, message) or "(none)"
    return f"""Classify every field a person fills in inside the HTML below.
{count_line}
Rules:
- Include <input type="text|email|tel|number|password|radio|checkbox">, <textarea> and <select>.
- Ignore hidden inputs, submit/reset/button/image inputs and plain buttons.
- Give each field exactly one "role" from: {roles}.
  Use "{AGREEMENT_ROLE}" for privacy policy or terms consent checkboxes.
  When unsure use "{OTHER_ROLE}". Do not guess.
- When one input explicitly asks for several things (e.g. "部署・役職"), also list them in "roles", most important first.
- Radio buttons, checkboxes and options that answer one question are one field.
- For an "inquiryType" radio/checkbox/select, put the option text to choose in "preferredOption":
  prefer options about sales (営業, セールス, 販売代行), otherwise an "その他" option, otherwise "".
- Two postal code inputs are "postalCode1" and "postalCode2"; a single one is "postalCode".
- Split address inputs use "prefecture", "city", "town", "street", "building"; a single one is "address".
- If there is at least one field, "fields" must not be empty: emit unknown fields with role "{OTHER_ROLE}".

Output exactly one JSON object, no prose and no code fences:
{{"fields": [{{"nameAttr": "your_name", "idAttr": "name", "type": "text", "label": "お名前", "role": "name", "required": true}},
            {{"nameAttr": "type", "idAttr": "", "type": "radio", "label": "お問い合わせ種別", "role": "inquiryType", "required": false, "preferredOption": "案件のご依頼"}}]}}
Use "" for missing name/id attributes. "label" is the caption a person sees (label text, nearby text, placeholder, then name/id).

Values that may be sent (hints only):
{sender}

HTML:
{trimmed}
"""


def fallback_fields_from_html(html: str) -> Optional[Dict[str, Any]]:
    """Pull inputs out of raw HTML as role-less ("other") fields."""
    fields: List[Dict[str, Any]] = []
    for match in _FIELD_TAG.finditer(html or ""):
        tag = match.group(1).lower()
        attrs = match.group(2) or ""
        field_type = tag
        if tag == "input":
            field_type = _attr(attrs, "type").lower() or "text"
            if _IGNORED_INPUT_TYPES.search(field_type):
                continue
        name_attr = _attr(attrs, "name")
        id_attr = _attr(attrs, "id")
        placeholder = _attr(attrs, "placeholder")
        label = placeholder or name_attr or id_attr or ("内容" if tag == "textarea" else "")
        required = bool(
            re.search(r"\srequired\b", attrs, re.IGNORECASE)
            or re.search(r"aria-required\s*=\s*[\"']?true", attrs, re.IGNORECASE)
        )
        fields.append(
            {
                "nameAttr": name_attr,
                "idAttr": id_attr,
                "type": field_type,
                "label": label,
                "role": OTHER_ROLE,
                "required": required,
            }
        )
    if not fields:
        logger.warning("Fallback extraction found no fields")
        return None
    logger.info("Fallback extraction built %s fields", len(fields))
    return {"fields": fields}


def _attr(attrs: str, name: str) -> str:
    found = re.search(rf"\b{name}\s*=\s*[\"']([^\"']*)[\"']", attrs, re.IGNORECASE)
    return found.group(1) if found else ""


def _remove_code_fences(text: str) -> str:
    if text.startswith("```"):
        fence = text.split("```")
        if len(fence) >= 3:
            body = fence[1].strip()
            return body[4:].lstrip() if body.lower().startswith("json") else body
        return text.lstrip("`")
    return text


def _extract_fields_array(text: str) -> List[Dict[str, Any]]:
    start_key = text.find('"fields"')
    if start_key == -1:
        return []
    start = text.find("[", start_key)
    if start == -1:
        return []
    depth = 0
    end = -1
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                end = idx
                break
    if end == -1:
        return []

    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        return [entry for entry in parsed if isinstance(entry, dict)]

    recovered: List[Dict[str, Any]] = []
    for chunk in _FLAT_OBJECT.findall(text[start + 1 : end]):
        try:
            entry = json.loads(chunk)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, dict):
            recovered.append(entry)
    return recovered


def parse_schema_text(raw: Optional[str], html: str = "", field_count: int = 0) -> Optional[FormSchema]:
    """Best-effort parse of model output, falling back to fields scraped from ``html``."""
    text = _remove_code_fences((raw or "").strip())
    payload: Any = None

    if text:
        block = _FIRST_OBJECT.search(text)
        try:
            payload = json.loads(block.group(0) if block else text)
        except json.JSONDecodeError:
            logger.warning("Classifier output is not valid JSON; recovering the fields array")
            recovered = _extract_fields_array(text)
            payload = {"fields": recovered} if recovered else None
    else:
        logger.warning("Classifier returned an empty response")

    if not isinstance(payload, dict) or not isinstance(payload.get("fields"), list):
        if field_count > 0:
            fallback = fallback_fields_from_html(html)
            return FormSchema.parse(fallback) if fallback else None
        return None

    if not payload["fields"] and field_count > 0:
        logger.warning("Classifier returned no fields for a form with ~%s inputs; using fallback", field_count)
        fallback = fallback_fields_from_html(html)
        if fallback:
            return FormSchema.parse(fallback)
    return FormSchema.parse(payload)


class FormAnalyzer:
    """Classify the form on a page into a FormSchema with an OpenAI model."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = OPENAI_MODEL):
        self.client = client
        self.model = model

    async def analyze(
        self,
        page: Union[Page, Frame],
        profile: Optional[ProfileRecord] = None,
        message: Optional[str] = None,
    ) -> Optional[FormSchema]:
        html, field_count = await collect_form_html(page)
        if not html:
            return None
        return await self.classify_html(html, profile, message, field_count)

    async def classify_html(
        self,
        html: str,
        profile: Optional[ProfileRecord] = None,
        message: Optional[str] = None,
        field_count: Optional[int] = None,
    ) -> Optional[FormSchema]:
        if not self.client:
            raise RuntimeError("OpenAI client is not configured")
        if field_count is None:
            field_count = count_fields(html)

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(html, profile, message, field_count)},
        ]
        logger.debug("Classifier prompt length: %s", len(messages[-1]["content"]))
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0.1,
        )
        raw = response.choices[0].message.content if response.choices else ""
        logger.debug("Classifier raw response: %s", raw)
        schema = parse_schema_text(raw, html[:FORM_HTML_MAX_CHARS], field_count)
        if schema is not None:
            logger.info("Classifier produced %s fields", len(schema.fields))
        return schema
