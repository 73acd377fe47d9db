"""Core compression logic."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterable

from html_compressor.patterns import (
    BUILTIN_RULES,
    COMMENT_RE,
    INTERTAG_RE,
    MULTISPACE_RE,
    RESTORE_ORDER,
    TAG_END_SPACE_RE,
    TAG_PROPERTY_RE,
    TAG_QUOTE_RE,
    placeholder,
    placeholder_pattern,
    user_kind,
)


def _compile_patterns(
    patterns: Iterable[str | re.Pattern[str]] | None,
) -> tuple[re.Pattern[str], ...]:
    """Compile custom preserve patterns, keeping their order.

    Raises:
        ValueError: If a pattern string is not a valid regex.
    """
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns or ():
        if isinstance(pattern, str):
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                raise ValueError(f"Invalid regex pattern '{pattern}': {e}") from e
        else:
            compiled.append(pattern)
    return tuple(compiled)


@dataclasses.dataclass(frozen=True, slots=True)
class CompressorOptions:
    """Settings for a compression run.

    Attributes:
        remove_comments: Remove HTML comments (conditional comments are kept).
        remove_multi_spaces: Replace runs of whitespace with a single space.
        remove_intertag_spaces: Remove whitespace between a ``>`` and the next ``<``.
            Fairly safe unless the page relies on spaces for formatting.
        remove_quotes: Drop quotes around attribute values that consist only of
            letters, digits, ``-`` and ``_``. Might break strict validation.
        enabled: Set to ``False`` to return input untouched.
        preserve_patterns: Custom regexes whose matches are never modified.
            They run before the built-in rules; earlier patterns win.
            Strings are compiled case-insensitive.
    """

    remove_comments: bool = True
    remove_multi_spaces: bool = True
    remove_intertag_spaces: bool = False
    remove_quotes: bool = False
    enabled: bool = True
    preserve_patterns: tuple[re.Pattern[str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "preserve_patterns", _compile_patterns(self.preserve_patterns))


@dataclasses.dataclass(frozen=True, slots=True)
class PreservedBlock:
    """A region that was passed through compression untouched."""

    kind: str          # "cond", "event", "pre", "script", "style", "textarea" or "user<N>"
    index: int         # position within its kind, in extraction order
    text: str          # the preserved content


@dataclasses.dataclass(frozen=True, slots=True)
class CompressionResult:
    """Result of compression with statistics."""

    text: str                                    # the compressed markup
    original_length: int                         # len(original input)
    compressed_length: int                       # len(text)
    ratio: float                                 # compressed_length / original_length
    savings_pct: float                           # (1 - ratio) * 100
    preserved_blocks: tuple[PreservedBlock, ...]

    def __str__(self) -> str:
        return self.text


def _resolve_options(options: CompressorOptions | None, overrides: dict) -> CompressorOptions:
    if options is None:
        return CompressorOptions(**overrides)
    if overrides:
        return dataclasses.replace(options, **overrides)
    return options


def _extract_blocks(html: str, pattern: re.Pattern[str], blocks: list[str], kind: str, group: int = 0) -> str:
    """Replace every match of *pattern* with a placeholder, saving *group* to *blocks*.

    Text outside the saved group (including the rest of the match) is copied
    through unchanged.
    """
    parts: list[str] = []
    prev_end = 0

    for match in pattern.finditer(html):
        start, end = match.span(group)
        parts.append(html[prev_end:start])
        parts.append(placeholder(kind, len(blocks)))
        blocks.append(match.group(group))
        prev_end = end

    if not parts:
        return html

    parts.append(html[prev_end:])
    return "".join(parts)


def _reinsert_blocks(html: str, kind: str, blocks: list[str]) -> str:
    """Swap placeholders of *kind* back for the saved text."""
    parts: list[str] = []
    prev_end = 0

    for match in placeholder_pattern(kind).finditer(html):
        index = int(match.group(1))
        # Token-like text that was already in the input; nothing to put back.
        if index >= len(blocks):
            continue
        parts.append(html[prev_end:match.start()])
        parts.append(blocks[index])
        prev_end = match.end()

    if not parts:
        return html

    parts.append(html[prev_end:])
    return "".join(parts)


def _preserve_blocks(html: str, options: CompressorOptions) -> tuple[str, dict[str, list[str]]]:
    """Pull all protected regions out of *html*.

    Returns the markup with placeholders and the saved text per kind.
    """
    blocks: dict[str, list[str]] = {}

    for p, pattern in enumerate(options.preserve_patterns):
        kind = user_kind(p)
        html = _extract_blocks(html, pattern, blocks.setdefault(kind, []), kind)

    for rule in BUILTIN_RULES:
        html = _extract_blocks(html, rule.pattern, blocks.setdefault(rule.kind, []), rule.kind, rule.group)

    return html, blocks


def _process_html(html: str, options: CompressorOptions) -> str:
    """Apply whitespace and comment rules to placeholder-substituted markup."""
    if options.remove_comments:
        html = COMMENT_RE.sub("", html)

    if options.remove_intertag_spaces:
        html = INTERTAG_RE.sub("><", html)

    if options.remove_multi_spaces:
        html = MULTISPACE_RE.sub(" ", html)

    if options.remove_quotes:
        html = TAG_QUOTE_RE.sub(r"=\2", html)

    # attr = value -> attr=value
    html = TAG_PROPERTY_RE.sub(r"\1=", html)

    # <br /> -> <br/>
    html = TAG_END_SPACE_RE.sub(r"\1\2", html)

    return html


def _return_blocks(html: str, blocks: dict[str, list[str]], options: CompressorOptions) -> str:
    """Put preserved regions back, in reverse order of extraction."""
    for kind in RESTORE_ORDER:
        html = _reinsert_blocks(html, kind, blocks.get(kind, []))

    for p in range(len(options.preserve_patterns) - 1, -1, -1):
        kind = user_kind(p)
        html = _reinsert_blocks(html, kind, blocks.get(kind, []))

    return html


def _collect_blocks(blocks: dict[str, list[str]]) -> tuple[PreservedBlock, ...]:
    return tuple(
        PreservedBlock(kind=kind, index=index, text=text)
        for kind, texts in blocks.items()
        for index, text in enumerate(texts)
    )


def _compress(html: str, options: CompressorOptions) -> tuple[str, dict[str, list[str]]]:
    html, blocks = _preserve_blocks(html, options)
    html = _process_html(html, options)
    html = _return_blocks(html, blocks, options)
    return html.strip(), blocks


def compress(html: str | None, options: CompressorOptions | None = None, **overrides) -> str | None:
    """Compress HTML by removing comments, extra spaces and line breaks.

    Content of ``<pre>``, ``<textarea>``, ``<script>`` and ``<style>`` tags,
    conditional comments, inline event handlers and anything matched by
    ``preserve_patterns`` is left exactly as it was.

    Args:
        html: HTML source. Empty or ``None`` input is returned as is.
        options: Compression settings; defaults to ``CompressorOptions()``.
        **overrides: Individual ``CompressorOptions`` fields applied on top of *options*.

    Returns:
        Compressed HTML.

    Raises:
        ValueError: If a preserve pattern string is not a valid regex.
    """
    options = _resolve_options(options, overrides)

    if not options.enabled or not html:
        return html

    compressed, _ = _compress(html, options)
    return compressed


def compress_with_stats(
    html: str | None,
    options: CompressorOptions | None = None,
    **overrides,
) -> CompressionResult:
    """Compress HTML and return statistics about the run.

    Args:
        html: HTML source.
        options: Compression settings; defaults to ``CompressorOptions()``.
        **overrides: Individual ``CompressorOptions`` fields applied on top of *options*.

    Returns:
        CompressionResult with the compressed markup, sizes and preserved blocks.

    Raises:
        ValueError: If a preserve pattern string is not a valid regex.
    """
    options = _resolve_options(options, overrides)
    html = html or ""

    if options.enabled and html:
        compressed, blocks = _compress(html, options)
    else:
        compressed, blocks = html, {}

    original_length = len(html)
    compressed_length = len(compressed)
    ratio = compressed_length / original_length if original_length > 0 else 1.0

    return CompressionResult(
        text=compressed,
        original_length=original_length,
        compressed_length=compressed_length,
        ratio=ratio,
        savings_pct=(1 - ratio) * 100,
        preserved_blocks=_collect_blocks(blocks),
    )


def compress_file(
    file_path: str,
    options: CompressorOptions | None = None,
    encoding: str = "utf-8",
    **overrides,
) -> str | None:
    """Read an HTML file and return its compressed contents.

    The file is compressed in one piece; protected regions may span any
    number of lines.

    Raises:
        ValueError: If a preserve pattern string is not a valid regex.
        FileNotFoundError: If the file does not exist.
    """
    options = _resolve_options(options, overrides)
    with open(file_path, encoding=encoding) as f:
        html = f.read()
    return compress(html, options)
