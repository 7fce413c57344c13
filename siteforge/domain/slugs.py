import re
from collections.abc import Iterator

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+", re.ASCII)
_HYPHENS = re.compile(r"-{2,}")

FALLBACK_SLUG = "post"


def slugify(title: str) -> str:
    """
    Derive a URL slug from a title.

    >>> slugify("Hello, World!")
    'hello-world'
    """
    text = title.strip().lower()
    text = _NON_WORD.sub("", text)
    text = _WHITESPACE.sub("-", text)
    text = _HYPHENS.sub("-", text).strip("-")
    return text or FALLBACK_SLUG


def slug_candidates(base: str, max_attempts: int) -> Iterator[str]:
    """Yield `base`, `base-1`, `base-2`, ... up to `max_attempts` values."""
    for n in range(max_attempts):
        yield base if n == 0 else f"{base}-{n}"


def translation_slug(source_slug: str, language: str) -> str:
    return f"{source_slug}-{language.lower()}"
