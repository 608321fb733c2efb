from __future__ import annotations

import re
from functools import lru_cache
from typing import Pattern

# Compile patterns once

# A bracketed token followed by "(" or by "[" that does not open another
# footnote marker is a Markdown link or reference-style link, not a citation.
_NOT_A_LINK = r"(?!\(|\[(?!\^))"

# Numeric citations: [^12]
PATTERN_NUMERIC_CITATION = re.compile(r"\[\^(\d+)\]" + _NOT_A_LINK)

# Runs of adjacent numeric brackets, with or without caret: [1], [1][2], [^1][2]
# Skips [text][12] (preceded by "]"), [12](url), [12][ref] and link
# reference definitions such as "[12]: https://example.com".
PATTERN_NUMERIC_BRACKET_RUN = re.compile(
    r"(?<!\])(?:\[\^?\d+\])+" + r"(?!\(|\[(?!\^)|:[ \t]*<?[A-Za-z][A-Za-z0-9+.-]*://)"
)

# One numeric citation missing the caret, inside a run: [12]
PATTERN_CARETLESS_CITATION = re.compile(r"\[(\d+)\]")

# Any footnote definition line, whatever the label: "[^label]: text"
PATTERN_DEFINITION_LINE = re.compile(r"^[ \t]*\[\^[^\]\s]+\]:")

# Code spans
PATTERN_FENCED_CODE = re.compile(
    r"^[ \t]*(?P<fence>`{3,}|~{3,})[^\n]*$.*?(?:^[ \t]*(?P=fence)[ \t]*$|\Z)",
    re.MULTILINE | re.DOTALL,
)
PATTERN_INDENTED_LINE = re.compile(r"^(?: {4}|\t)")
PATTERN_INLINE_CODE = re.compile(r"(?P<ticks>`+)(?!`)(?:(?!\n[ \t]*\n).)+?(?<!`)(?P=ticks)(?!`)", re.DOTALL)


def hex_body(hex_length: int) -> str:
    return r"[0-9a-f]{%d}" % hex_length


@lru_cache(maxsize=None)
def hex_citation_pattern(hex_length: int = 6) -> Pattern[str]:
    """Hex marker in any position, reference or definition: [^a1b2c3]"""
    return re.compile(r"\[\^(" + hex_body(hex_length) + r")\]" + _NOT_A_LINK)


@lru_cache(maxsize=None)
def hex_definition_pattern(hex_length: int = 6) -> Pattern[str]:
    return re.compile(r"^[ \t]*\[\^(" + hex_body(hex_length) + r")\]:", re.MULTILINE)


@lru_cache(maxsize=None)
def citation_marker_pattern(hex_length: int = 6) -> Pattern[str]:
    # Capturing group so re.split keeps the markers
    return re.compile(r"(\[\^(?:\d+|" + hex_body(hex_length) + r")\]" + _NOT_A_LINK + ")")


def numeric_label_pattern(label: str) -> Pattern[str]:
    return re.compile(r"\[\^" + re.escape(label) + r"\]" + _NOT_A_LINK)


def definition_text_pattern(label: str) -> Pattern[str]:
    """Definition line for one label, capturing the text after the colon."""
    return re.compile(r"^[ \t]*\[\^" + re.escape(label) + r"\]:[ \t]*(.+?)[ \t]*$", re.MULTILINE)


def section_header_pattern(header: str) -> Pattern[str]:
    """Whole header line, ignoring case; an ATX header matches at any level."""
    header = header.strip()
    title = header.lstrip("#").strip()
    if title and title != header:
        return re.compile(
            r"^[ \t]*#{1,6}[ \t]+" + re.escape(title) + r"[ \t]*#*[ \t]*\r?$",
            re.MULTILINE | re.IGNORECASE,
        )
    return re.compile(r"^[ \t]*" + re.escape(header) + r"[ \t]*\r?$", re.MULTILINE | re.IGNORECASE)


# Leading metadata block: "---\n...\n---\n"
PATTERN_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n.*?\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
