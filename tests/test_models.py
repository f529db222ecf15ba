from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.models import (  # noqa: E402
    FieldDescriptor,
    FilledEntry,
    FormSchema,
    InvalidFormSchemaError,
    ProfileRecord,
)


def test_role_and_roles_are_merged_in_order() -> None:
    field = FieldDescriptor.model_validate(
        {"role": "department", "roles": ["department", " position ", ""], "type": "TEXT", "nameAttr": None}
    )
    assert field.roles == ("department", "position")
    assert field.primary_role == "department"
    assert field.type == "text"
    assert field.name_attr == ""


def test_unknown_type_and_blank_preferred_option_are_normalised() -> None:
    field = FieldDescriptor.model_validate({"role": "email", "type": "password", "preferredOption": "  ", "required": "true"})
    assert field.type == "text"
    assert field.preferred_option is None
    assert field.required is True


def test_field_without_roles_has_empty_primary_role() -> None:
    field = FieldDescriptor.model_validate({"type": "text", "nameAttr": "x"})
    assert field.roles == ()
    assert field.primary_role == ""


def test_schema_parse_accepts_object_string_and_list() -> None:
    payload = {"fields": [{"role": "email", "type": "email", "nameAttr": "mail"}]}
    assert len(FormSchema.parse(payload).fields) == 1
    assert len(FormSchema.parse('{"fields": [{"role": "name"}]}').fields) == 1
    assert len(FormSchema.parse([{"role": "name"}]).fields) == 1


def test_schema_parse_skips_non_object_entries() -> None:
    schema = FormSchema.parse({"fields": [{"role": "email"}, "junk", 3, None]})
    assert [field.primary_role for field in schema.fields] == ["email"]


def test_roles_of_unsupported_type_are_ignored() -> None:
    field = FieldDescriptor.model_validate({"roles": 5, "role": "email", "nameAttr": "mail"})
    assert field.roles == ("email",)
    assert FieldDescriptor.model_validate({"roles": True, "nameAttr": "x"}).roles == ()


def test_schema_parse_keeps_good_fields_next_to_malformed_roles() -> None:
    schema = FormSchema.parse(
        {"fields": [{"roles": 5, "nameAttr": "x"}, {"role": "email", "type": "email", "nameAttr": "mail"}]}
    )
    assert [field.name_attr for field in schema.fields] == ["x", "mail"]
    assert schema.fields[1].roles == ("email",)


@pytest.mark.parametrize("payload", [{"fields": "nope"}, {"items": []}, 42, "not json"])
def test_schema_parse_rejects_structurally_invalid_payloads(payload) -> None:
    with pytest.raises(InvalidFormSchemaError):
        FormSchema.parse(payload)


def test_invalid_schema_error_is_a_value_error() -> None:
    assert issubclass(InvalidFormSchemaError, ValueError)


def test_profile_record_coerces_values_and_pops_message() -> None:
    profile = ProfileRecord.from_mapping({"email": "a@b.com", "age": 30, "fax": None, "message": "hi"})
    assert profile.get("age") == "30"
    assert profile.get("fax") == ""
    assert profile.get("missing") == ""
    assert profile.message == "hi"
    assert "message" not in profile.values
    assert profile.first("fax", "email") == "a@b.com"


def test_filled_entry_dumps_camel_case_keys() -> None:
    entry = FilledEntry(role="email", roles=["email"], name_attr="mail", option_value="x", order=1)
    record = entry.to_record()
    assert record["nameAttr"] == "mail"
    assert record["optionValue"] == "x"
    assert record["idAttr"] == ""
    assert record["source"] == "selector"
