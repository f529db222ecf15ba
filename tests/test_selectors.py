import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.selector_resolver import id_selector, quote_attr, resolve_selectors


def test_name_selector_is_scoped_to_field_type():
    assert resolve_selectors("checkbox", "agree") == ['input[type="checkbox"][name="agree"]']
    assert resolve_selectors("radio", "kind") == ['input[type="radio"][name="kind"]']
    assert resolve_selectors("select", "pref") == ['select[name="pref"]']
    assert resolve_selectors("textarea", "body") == ['textarea[name="body"]']
    assert resolve_selectors("email", "mail") == ['input[name="mail"]']


def test_id_selector_is_used_without_name():
    assert resolve_selectors("textarea", "", "msg") == ["#msg"]
    assert resolve_selectors("text", "", "1st-name") == ['[id="1st-name"]']


def test_bare_selector_is_last_resort():
    assert resolve_selectors("tel") == ['input[type="tel"]']
    assert resolve_selectors("select") == ["select"]
    assert resolve_selectors("", "", "") == ['input[type="text"]']


def test_attribute_values_are_escaped():
    assert quote_attr('a"b') == '"a\\"b"'
    assert resolve_selectors("text", "data[name]") == ['input[name="data[name]"]']
    assert id_selector("form:email") == '[id="form:email"]'
