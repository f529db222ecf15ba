import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.models import FieldDescriptor, FormSchema, ProfileRecord
from contact_autofill.roles import resolve_field_value
from contact_autofill.summary import FillOutcome, FillSummaryRecorder, entries_for_log


def test_success_fans_out_one_row_per_satisfied_role():
    recorder = FillSummaryRecorder()
    field = FieldDescriptor(roles=("department", "position"), type="text", name_attr="dp")
    resolved = resolve_field_value(field, ProfileRecord(values={"department": "Sales", "position": "Manager"}))

    order = recorder.begin_field()
    recorder.record_success(field, order, resolved, FillOutcome(selector='input[name="dp"]', value=resolved.write_value))

    rows = recorder.entries
    assert [row.role for row in rows] == ["department", "position"]
    assert {row.order for row in rows} == {1}
    assert {row.selector for row in rows} == {'input[name="dp"]'}


def test_unresolved_rows_keep_original_roles():
    recorder = FillSummaryRecorder()
    field = FieldDescriptor(roles=("phone",), type="tel", name_attr="tel")

    entry = recorder.record_unresolved(field, recorder.begin_field())

    assert (entry.role, entry.roles, entry.selector, entry.value) == ("other", ["phone"], "", "")


def test_values_by_role_and_header_projection():
    recorder = FillSummaryRecorder()
    email = FieldDescriptor(roles=("email",), type="email")
    recorder.record_success(
        email,
        recorder.begin_field(),
        resolve_field_value(email, ProfileRecord(values={"email": "a@b.com"})),
        FillOutcome(selector="#mail", value="a@b.com"),
    )
    recorder.record_marker("captcha", "recaptcha", "div.g-recaptcha", "reCAPTCHA", "manual_action_required")

    assert recorder.values_by_role() == {"email": "a@b.com", "captcha": "manual_action_required"}
    assert recorder.project_row(["name", "email", "captcha"]) == ["", "a@b.com", "manual_action_required"]
    assert recorder.last_order == 2


def test_log_rows_fall_back_to_collapsed_schema():
    schema = FormSchema.parse(
        {
            "fields": [
                {"role": "gender", "type": "radio", "nameAttr": "sex"},
                {"role": "gender", "type": "radio", "nameAttr": "sex"},
                {"role": "email", "type": "email", "nameAttr": "mail"},
            ]
        }
    )

    rows = entries_for_log([], schema)

    assert [(row["role"], row["order"], row["value"]) for row in rows] == [("gender", 1, ""), ("email", 2, "")]
    assert entries_for_log([]) == []
