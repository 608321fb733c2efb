from __future__ import annotations

import secrets
from typing import List, Tuple

from models import CodeSpan
from patterns import PATTERN_FENCED_CODE, PATTERN_INDENTED_LINE, PATTERN_INLINE_CODE


class _PlaceholderFactory:
    """Hands out tokens like ``@@CODE_SPAN_<nonce>_<n>@@``.

    The nonce is re-drawn until the token prefix does not occur in the text,
    so a token can never collide with document content.
    """

    def __init__(self, text: str) -> None:
        nonce = secrets.token_hex(4)
        while f"@@CODE_SPAN_{nonce}_" in text:
            nonce = secrets.token_hex(4)
        self._prefix = f"@@CODE_SPAN_{nonce}_"
        self._counter = 0

    def next(self) -> str:
        token = f"{self._prefix}{self._counter}@@"
        self._counter += 1
        return token


def _replace_spans(
    text: str, spans: List[Tuple[int, int]], kind: str, factory: _PlaceholderFactory, out: List[CodeSpan]
) -> str:
    # Positional rebuild: identical snippets each get their own token
    pieces: List[str] = []
    last = 0
    for start, end in spans:
        token = factory.next()
        out.append(CodeSpan(placeholder=token, original=text[start:end], kind=kind))
        pieces.append(text[last:start])
        pieces.append(token)
        last = end
    pieces.append(text[last:])
    return "".join(pieces)


def _indented_block_spans(text: str) -> List[Tuple[int, int]]:
    """Offsets of indented code blocks.

    A block starts on an indented line that follows a blank line (or the
    start of the text), continues through indented and blank lines, and
    never includes trailing blank lines.
    """
    spans: List[Tuple[int, int]] = []
    lines = text.split("\n")
    offsets: List[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line) + 1

    i = 0
    prev_blank = True
    while i < len(lines):
        line = lines[i]
        if prev_blank and line.strip() and PATTERN_INDENTED_LINE.match(line):
            last_code = i
            j = i + 1
            while j < len(lines):
                nxt = lines[j]
                if not nxt.strip():
                    j += 1
                    continue
                if PATTERN_INDENTED_LINE.match(nxt):
                    last_code = j
                    j += 1
                    continue
                break
            start = offsets[i]
            end = offsets[last_code] + len(lines[last_code])
            spans.append((start, end))
            i = last_code + 1
            prev_blank = False
            continue
        prev_blank = not line.strip()
        i += 1
    return spans


def extract_code_spans(text: str) -> Tuple[str, List[CodeSpan]]:
    """Swap code for placeholders: fenced blocks, then indented blocks, then inline code."""
    placeholders: List[CodeSpan] = []
    factory = _PlaceholderFactory(text)

    fenced = [m.span() for m in PATTERN_FENCED_CODE.finditer(text)]
    protected = _replace_spans(text, fenced, "fenced", factory, placeholders)

    indented = _indented_block_spans(protected)
    protected = _replace_spans(protected, indented, "indented", factory, placeholders)

    inline = [m.span() for m in PATTERN_INLINE_CODE.finditer(protected)]
    protected = _replace_spans(protected, inline, "inline", factory, placeholders)

    return protected, placeholders


def restore_code_spans(text: str, placeholders: List[CodeSpan]) -> str:
    for span in reversed(placeholders):
        text = text.replace(span.placeholder, span.original, 1)
    return text
