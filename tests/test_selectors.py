import pytest

from scenarioforge.resolver import selectors
from scenarioforge.resolver.selectors import SelectorKind


@pytest.mark.parametrize("selector, kind", [
    ("role=button", SelectorKind.ROLE),
    ('role=button[name="Save"]', SelectorKind.ROLE),
    ('[role="dialog"]', SelectorKind.ROLE),
    ("text=Sign in", SelectorKind.TEXT),
    ('[data-testid="login-btn"]', SelectorKind.TEST_ID),
    ("[aria-label='Search']", SelectorKind.ARIA_LABEL),
    ("#user", SelectorKind.ID),
    (".btn.btn-primary", SelectorKind.CLASS),
    ("button.css-1x9k2", SelectorKind.CLASS),
    ('[name="q"]', SelectorKind.ATTRIBUTE),
    ("form > div:nth-child(2) input", SelectorKind.CSS),
])
def test_classify_selector(selector, kind):
    assert selectors.classify_selector(selector) == kind


def test_only_purpose_built_dialects_are_stable():
    assert selectors.is_stable('[data-testid="x"]')
    assert selectors.is_stable("text=Save")
    assert not selectors.is_stable("#save")
    assert not selectors.is_stable(".css-13fj2")


def test_attribute_values_are_escaped_and_round_trip():
    selector = selectors.testid_selector('say "hi"')
    assert selector == '[data-testid="say \\"hi\\""]'
    assert selectors.attribute_value(selector) == 'say "hi"'


def test_id_selector_falls_back_to_attribute_form():
    assert selectors.id_selector("user") == "#user"
    assert selectors.id_selector("1st field") == '[id="1st field"]'


def test_text_selector_collapses_whitespace():
    assert selectors.text_selector("  Sign\n   in ") == "text=Sign in"


def test_text_selector_rejects_empty_and_long_text():
    assert selectors.text_selector("   ") is None
    assert selectors.text_selector(None) is None
    assert selectors.text_selector("x" * (selectors.MAX_TEXT_LENGTH + 1)) is None


def test_parse_role():
    assert selectors.parse_role('role=button[name="Save"]') == ("button", "Save")
    assert selectors.parse_role("role=link") == ("link", None)
    assert selectors.parse_role("#id") == (None, None)
