import re
from enum import Enum
from typing import Optional

MAX_TEXT_LENGTH = 64

_ATTRIBUTE_RE = re.compile(r"""^\[\s*([\w-]+)\s*(?:=\s*(["']?)(.*?)\2)?\s*\]$""", re.DOTALL)
_ID_RE = re.compile(r"^#[A-Za-z_][\w-]*$")
_CLASS_RE = re.compile(r"^[a-zA-Z]*(\.[A-Za-z_][\w-]*)+$")
_CSS_IDENT_RE = re.compile(r"^[A-Za-z_][\w-]*$")
_ROLE_RE = re.compile(r"""^role=([\w-]+)(?:\[name=(["'])(.*)\2\])?$""", re.DOTALL)


class SelectorKind(str, Enum):
    TEST_ID = "test-id"
    ARIA_LABEL = "aria-label"
    ROLE = "role"
    TEXT = "text"
    ID = "id"
    CLASS = "class"
    ATTRIBUTE = "attribute"
    CSS = "css"


STABLE_KINDS = frozenset({SelectorKind.TEST_ID, SelectorKind.ARIA_LABEL, SelectorKind.ROLE, SelectorKind.TEXT})


def classify_selector(selector: str) -> SelectorKind:
    s = selector.strip()
    if s.startswith("role="):
        return SelectorKind.ROLE
    if s.startswith("text="):
        return SelectorKind.TEXT

    m = _ATTRIBUTE_RE.match(s)
    if m:
        attr = m.group(1).lower()
        if attr == "data-testid":
            return SelectorKind.TEST_ID
        if attr == "aria-label":
            return SelectorKind.ARIA_LABEL
        if attr == "role":
            return SelectorKind.ROLE
        return SelectorKind.ATTRIBUTE

    if _ID_RE.match(s):
        return SelectorKind.ID
    if _CLASS_RE.match(s):
        return SelectorKind.CLASS
    return SelectorKind.CSS


def is_stable(selector: str) -> bool:
    return classify_selector(selector) in STABLE_KINDS


def attribute_value(selector: str) -> Optional[str]:
    """Value of a single ``[attr="value"]`` selector, unescaped."""
    m = _ATTRIBUTE_RE.match(selector.strip())
    if not m or m.group(3) is None:
        return None
    return m.group(3).replace('\\"', '"').replace("\\\\", "\\")


def parse_role(selector: str):
    """Split ``role=button[name="Save"]`` into ``("button", "Save")``."""
    m = _ROLE_RE.match(selector.strip())
    if not m:
        return None, None
    return m.group(1), m.group(3)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def attribute_selector(name: str, value: str) -> str:
    return f'[{name}="{_escape(value)}"]'


def testid_selector(value: str) -> str:
    return attribute_selector("data-testid", value)


def aria_label_selector(value: str) -> str:
    return attribute_selector("aria-label", value)


def role_selector(value: str) -> str:
    return f"role={value.strip()}"


def id_selector(value: str) -> str:
    if _CSS_IDENT_RE.match(value):
        return f"#{value}"
    return attribute_selector("id", value)


def normalize_text(value: Optional[str]) -> str:
    return " ".join((value or "").split())


def text_selector(value: str) -> Optional[str]:
    text = normalize_text(value)
    if not text or len(text) > MAX_TEXT_LENGTH:
        return None
    return f"text={text}"
