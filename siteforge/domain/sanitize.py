"""
HTML sanitizer for post content.

Strips disallowed tags and attributes, removes script-like elements together with
their bodies, blocks forbidden URL protocols and hardens links with rel attributes.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SanitizerConfig:
    """Sanitizer configuration from rules."""

    allow_tags: frozenset[str] = field(
        default_factory=lambda: frozenset(
            ["p", "br", "h1", "h2", "h3", "blockquote", "ul", "ol", "li", "strong", "em",
             "code", "pre", "a", "img"]
        )
    )
    allow_attrs: dict[str, frozenset[str]] = field(
        default_factory=lambda: {
            "a": frozenset(["href", "title", "target"]),
            "img": frozenset(["src", "alt", "title", "width", "height"]),
        }
    )
    drop_content_tags: frozenset[str] = field(
        default_factory=lambda: frozenset(["script", "style"])
    )
    forbid_protocols: frozenset[str] = field(
        default_factory=lambda: frozenset(["javascript:", "data:"])
    )
    link_rel: str = "noopener noreferrer"


DEFAULT_CONFIG = SanitizerConfig()

TAG_PATTERN = re.compile(r"<(/?)(\w+)([^>]*)>", re.IGNORECASE)
ATTR_PATTERN = re.compile(r'([\w-]+)\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|([^\s>]+))', re.IGNORECASE)
COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)


def _drop_block_pattern(tags: frozenset[str]) -> re.Pattern[str] | None:
    if not tags:
        return None
    names = "|".join(sorted(re.escape(t) for t in tags))
    return re.compile(rf"<({names})\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)


def parse_attributes(attr_string: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for match in ATTR_PATTERN.finditer(attr_string):
        name = match.group(1).lower()
        value = match.group(2) or match.group(3) or match.group(4) or ""
        attrs[name] = html.unescape(value)
    return attrs


def is_safe_url(url: str, config: SanitizerConfig = DEFAULT_CONFIG) -> bool:
    # Browsers ignore embedded whitespace/control characters in the scheme
    normalized = re.sub(r"[\s\x00-\x1f]", "", url).lower()
    return not any(normalized.startswith(p) for p in config.forbid_protocols)


def sanitize_html(html_content: str, config: SanitizerConfig = DEFAULT_CONFIG) -> str:
    """Return a sanitized copy of `html_content`."""
    cleaned = COMMENT_PATTERN.sub("", html_content)
    drop = _drop_block_pattern(config.drop_content_tags)
    if drop is not None:
        cleaned = drop.sub("", cleaned)

    def process_tag(match: re.Match[str]) -> str:
        is_closing = bool(match.group(1))
        tag_name = match.group(2).lower()

        if tag_name not in config.allow_tags:
            return ""
        if is_closing:
            return f"</{tag_name}>"

        attrs = parse_attributes(match.group(3))
        allowed = config.allow_attrs.get(tag_name, frozenset())
        kept = {name: value for name, value in attrs.items() if name in allowed}

        for url_attr in ("href", "src"):
            if url_attr in kept and not is_safe_url(kept[url_attr], config):
                del kept[url_attr]

        if tag_name == "a" and config.link_rel:
            kept["rel"] = config.link_rel

        if kept:
            parts = [f'{name}="{html.escape(value)}"' for name, value in kept.items()]
            return f"<{tag_name} {' '.join(parts)}>"
        return f"<{tag_name}>"

    return TAG_PATTERN.sub(process_tag, cleaned)
