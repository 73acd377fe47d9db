"""Regular expressions and placeholder tokens used by the compressor."""

from __future__ import annotations

import dataclasses
import functools
import re

# --- Placeholder tokens for preserved blocks ---
# The kind is upper-cased into the token: %%%COMPRESS~PRE~0%%%, %%%COMPRESS~USER1~3%%%
_PLACEHOLDER = "%%%COMPRESS~{kind}~{index}%%%"


def placeholder(kind: str, index: int) -> str:
    """Return the token that stands in for block *index* of category *kind*."""
    return _PLACEHOLDER.format(kind=kind.upper(), index=index)


@functools.lru_cache(maxsize=None)
def placeholder_pattern(kind: str) -> re.Pattern[str]:
    """Compiled matcher for the tokens of one category; group 1 is the index."""
    return re.compile(
        r"%%%COMPRESS~" + re.escape(kind.upper()) + r"~(\d+?)%%%",
        re.IGNORECASE,
    )


def user_kind(index: int) -> str:
    """Category name of the custom preserve pattern at position *index*."""
    return f"user{index}"


@dataclasses.dataclass(frozen=True, slots=True)
class BlockRule:
    """A protected region: what to match and which group becomes the placeholder."""

    kind: str                  # category the payload is stored under
    pattern: re.Pattern[str]
    group: int = 0             # 0 = whole match; otherwise only this group is replaced


# --- Protected regions ---
# Conditional comments. The closer has to match the opener:
#   hidden:   <!--[if IE]> ... <![endif]-->
#   revealed: <![if !IE]> ... <![endif]>
_COND_COMMENT_RE = re.compile(
    r"<!--\[[^\]]+?]>.*?<!\[[^\]]+]-->"
    r"|<!\[[^\]]+?]>.*?<!\[[^\]]+]>",
    re.IGNORECASE | re.DOTALL,
)

# Inline event handlers. Only the attribute value is protected, the
# ` onclick="` prefix and closing quote stay in the markup.
# unmasked: \son[a-z]+\s*=\s*"[^"\\\r\n]*(?:\\.[^"\\\r\n]*)*"
_EVENT_DOUBLE_QUOTE_RE = re.compile(
    r"(\son[a-z]+\s*=\s*\")([^\"\\\r\n]*(?:\\.[^\"\\\r\n]*)*)(\")",
    re.IGNORECASE,
)
_EVENT_SINGLE_QUOTE_RE = re.compile(
    r"(\son[a-z]+\s*=\s*')([^'\\\r\n]*(?:\\.[^'\\\r\n]*)*)(')",
    re.IGNORECASE,
)


def _element_pattern(tag: str) -> re.Pattern[str]:
    # Opening tag up to the first closing tag of the same name.
    return re.compile(
        rf"<{tag}\b[^>]*?>[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>",
        re.IGNORECASE,
    )


_PRE_RE = _element_pattern("pre")
_SCRIPT_RE = _element_pattern("script")
_TEXTAREA_RE = _element_pattern("textarea")

# Style tags stay in the markup, only the stylesheet text is protected
_STYLE_RE = re.compile(r"(<style[^>]*?>)(.*?)(</style>)", re.IGNORECASE | re.DOTALL)

# Order matters: events inside a <pre> or a conditional comment are pulled out
# before the enclosing block, so restoration has to run in reverse.
BUILTIN_RULES: tuple[BlockRule, ...] = (
    BlockRule("cond", _COND_COMMENT_RE),
    BlockRule("event", _EVENT_DOUBLE_QUOTE_RE, group=2),
    BlockRule("event", _EVENT_SINGLE_QUOTE_RE, group=2),
    BlockRule("pre", _PRE_RE),
    BlockRule("script", _SCRIPT_RE),
    BlockRule("style", _STYLE_RE, group=2),
    BlockRule("textarea", _TEXTAREA_RE),
)

# User blocks are restored after these, from the last pattern to the first.
RESTORE_ORDER: tuple[str, ...] = ("textarea", "style", "script", "pre", "event", "cond")

# --- Markup transformations ---
# A comment starting with "[" is a conditional comment and is left alone.
COMMENT_RE = re.compile(r"<!--(?!\[).*?-->", re.IGNORECASE | re.DOTALL)
INTERTAG_RE = re.compile(r">\s+?<")
MULTISPACE_RE = re.compile(r"\s{2,}")
TAG_QUOTE_RE = re.compile(r"\s*=\s*([\"'])([a-z0-9_-]+?)\1(?=[^<]*?>)", re.IGNORECASE)
TAG_PROPERTY_RE = re.compile(r"(\s\w+)\s*=\s*(?=[^<]*?>)")
TAG_END_SPACE_RE = re.compile(r"(<(?:[^>]+?))(?:\s+?)(/?>)")
