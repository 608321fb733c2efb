from __future__ import annotations

from typing import List

from patterns import PATTERN_DEFINITION_LINE, citation_marker_pattern

# A marker directly followed by one of these keeps no trailing space
_TRAILING_PUNCTUATION = set(".,;:!?)]}'\"")


def _fix_line(line: str, hex_length: int) -> str:
    parts = citation_marker_pattern(hex_length).split(line)
    if len(parts) == 1:
        return line
    out = parts[0]
    for i in range(1, len(parts), 2):
        marker, tail = parts[i], parts[i + 1]
        if out.strip():
            out = out.rstrip(" \t") + " "
        out += marker
        tail = tail.lstrip(" \t")
        if tail and not tail[0].isspace() and tail[0] not in _TRAILING_PUNCTUATION:
            out += " "
        out += tail
    return out


def fix_citation_spacing(content: str, hex_length: int = 6) -> str:
    """One space before and after each citation marker in prose lines.

    Definition lines ("[^id]: text") are returned untouched. A marker at the
    start of a line keeps the line's indentation; a marker followed by
    punctuation, whitespace or the end of the line gets no trailing space.
    Only the whitespace touching a marker is rewritten; other runs of spaces
    on the line stay as they are, so indentation and aligned columns survive.
    """
    lines: List[str] = content.split("\n")
    fixed = [line if PATTERN_DEFINITION_LINE.match(line) else _fix_line(line, hex_length) for line in lines]
    return "\n".join(fixed)
