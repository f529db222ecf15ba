"""Core data models for the contact form autofill engine."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

FIELD_TYPES: Tuple[str, ...] = ("text", "email", "tel", "number", "textarea", "select", "radio", "checkbox")

EntrySource = Literal["selector", "consent", "option-fallback", "text-fallback", "unresolved", "detected"]

_STRING_KEYS = ("label", "nameAttr", "name_attr", "idAttr", "id_attr")


class InvalidFormSchemaError(ValueError):
    """Raised when a form schema is not an object carrying a list of fields."""


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    roles: Tuple[str, ...] = ()
    type: str = "text"
    label: str = ""
    name_attr: str = Field(default="", alias="nameAttr")
    id_attr: str = Field(default="", alias="idAttr")
    required: bool = False
    preferred_option: Optional[str] = Field(default=None, alias="preferredOption")

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        payload = dict(data)

        # "role" is the classifier's preferred tag; "roles" lists every question the input serves.
        raw_roles = payload.pop("roles", None)
        if isinstance(raw_roles, str):
            raw_roles = [raw_roles]
        elif raw_roles is not None and not isinstance(raw_roles, (list, tuple)):
            logger.warning("Ignoring roles of unsupported type %s: %r", type(raw_roles).__name__, raw_roles)
            raw_roles = None
        candidates = [payload.pop("role", None), *(raw_roles or [])]
        roles: List[str] = []
        for candidate in candidates:
            if candidate is None:
                continue
            tag = str(candidate).strip()
            if tag and tag not in roles:
                roles.append(tag)
        payload["roles"] = tuple(roles)

        field_type = str(payload.get("type") or "text").strip().lower()
        payload["type"] = field_type if field_type in FIELD_TYPES else "text"

        for key in _STRING_KEYS:
            if key in payload:
                value = payload[key]
                payload[key] = "" if value is None else str(value).strip()

        payload["required"] = _coerce_bool(payload.get("required"))

        for key in ("preferredOption", "preferred_option"):
            if key in payload:
                option = payload[key]
                option = str(option).strip() if option is not None else ""
                payload[key] = option or None
        return payload

    @property
    def primary_role(self) -> str:
        return self.roles[0] if self.roles else ""

    @property
    def group_attr(self) -> str:
        return self.name_attr or self.id_attr


class FormSchema(BaseModel):
    fields: List[FieldDescriptor] = Field(default_factory=list)

    @classmethod
    def parse(cls, payload: Any) -> "FormSchema":
        """Validate classifier output; raise InvalidFormSchemaError when no field list is present."""
        if isinstance(payload, FormSchema):
            return payload
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise InvalidFormSchemaError(f"Form schema is not valid JSON: {exc}") from exc
        if isinstance(payload, list):
            payload = {"fields": payload}
        if not isinstance(payload, Mapping):
            raise InvalidFormSchemaError(f"Form schema must be an object, got {type(payload).__name__}")
        raw_fields = payload.get("fields")
        if not isinstance(raw_fields, list):
            raise InvalidFormSchemaError("Form schema must carry a 'fields' array")

        fields: List[FieldDescriptor] = []
        for idx, raw in enumerate(raw_fields):
            if isinstance(raw, FieldDescriptor):
                fields.append(raw)
                continue
            if not isinstance(raw, Mapping):
                logger.warning("Skipping non-object schema field at index %s: %r", idx, raw)
                continue
            try:
                fields.append(FieldDescriptor.model_validate(raw))
            except (ValidationError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid schema field at index %s: %s", idx, exc)
        return cls(fields=fields)


class ProfileRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    values: Dict[str, str] = Field(default_factory=dict)
    message: Optional[str] = None

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        coerced: Dict[str, str] = {}
        for key, raw in dict(value).items():
            name = str(key).strip()
            if not name:
                continue
            coerced[name] = "" if raw is None else str(raw)
        return coerced

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]], message: Optional[str] = None) -> "ProfileRecord":
        values = dict(mapping or {})
        stored_message = values.pop("message", None)
        if message is None and stored_message is not None:
            message = str(stored_message)
        return cls(values=values, message=message)

    def get(self, key: str) -> str:
        return self.values.get(key, "")

    def first(self, *keys: str) -> str:
        """Return the first non-blank value among ``keys`` (stripped), or an empty string."""
        for key in keys:
            value = self.values.get(key, "").strip()
            if value:
                return value
        return ""


class FilledEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: str
    roles: List[str] = Field(default_factory=list)
    type: str = "text"
    label: str = ""
    name_attr: str = Field(default="", alias="nameAttr")
    id_attr: str = Field(default="", alias="idAttr")
    selector: str = ""
    value: str = ""
    order: int = 0
    option_value: str = Field(default="", alias="optionValue")
    context: str = ""
    source: EntrySource = "selector"

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ContactAttempt(BaseModel):
    url: str
    status: Literal[
        "filled",
        "captcha_detected",
        "fill_empty",
        "form_schema_error",
        "navigation_error",
        "exception",
    ]
    entries: List[FilledEntry] = Field(default_factory=list)
    error: Optional[str] = None
    artifact_dir: Optional[str] = None


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in {"true", "1", "yes", "required", "y"}
