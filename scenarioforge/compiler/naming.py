import hashlib
import re

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")


def _digest(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]


def slugify(value: str) -> str:
    """'Log in, valid user' -> 'log_in_valid_user'"""
    return re.sub(r"_+", "_", _UNSAFE_RE.sub("_", value or "")).strip("_").lower()


def module_name(value: str, suffix: str = "") -> str:
    slug = slugify(value) or "scenario"
    if slug[0].isdigit():
        slug = f"scenario_{slug}"
    return f"{slug}{suffix}"


def unique_module_name(value: str) -> str:
    """module_name() plus a digest of ``value`` whenever slugging altered it.

    'Log in' and 'Log-in!' both slug to 'log_in'; the digest keeps their
    generated files apart.
    """
    slug = module_name(value)
    if slug == value:
        return slug
    return f"{slug}_{_digest(value or '')}"


def class_name(value: str, suffix: str = "") -> str:
    return "".join(part.capitalize() for part in module_name(value).split("_")) + suffix


def sanitize_identifier(value: str, default: str) -> str:
    """
    Replace every character outside [A-Za-z0-9_] with '_'.

    When anything was replaced, a short digest of the original is appended
    so that two distinct inputs never collapse to the same name.
    """
    if not value:
        return default
    cleaned = _UNSAFE_RE.sub("_", value)
    if cleaned != value:
        cleaned = f"{cleaned}_{_digest(value)}"
    return cleaned


def sanitize_file_name(value: str, default: str) -> str:
    """Safe pytest module file name: no path separators, 'test_' prefix, '.py' suffix."""
    if not value:
        return default
    stem = value[:-3] if value.endswith(".py") else value
    cleaned = _UNSAFE_RE.sub("_", stem)
    if not cleaned.startswith("test_"):
        cleaned = f"test_{cleaned}"
    if cleaned != stem:
        cleaned = f"{cleaned}_{_digest(value)}"
    return f"{cleaned}.py"
