from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Container, Optional, Tuple

from patterns import PATTERN_FRONTMATTER, definition_text_pattern

PLACEHOLDER_DEFINITION_TEXT = "Citation text needed."


def now_iso() -> str:
    # Millisecond precision with a trailing Z, e.g. 2024-05-01T12:00:00.000Z
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_hex_id(length: int = 6) -> str:
    return secrets.token_hex((length + 1) // 2)[:length]


def mint_hex_id(length: int, taken: Container[str], max_attempts: int = 10000) -> str:
    """Return a random hex id of ``length`` that is not in ``taken``.

    All-digit ids are rejected: they would be read back as numeric labels.
    """
    for _ in range(max_attempts):
        candidate = generate_hex_id(length)
        if candidate.isdigit():
            continue
        if candidate in taken:
            continue
        return candidate
    raise RuntimeError(f"Could not mint a unique {length}-digit hex id after {max_attempts} attempts")


def extract_citation_text(content: str, label: str) -> Optional[str]:
    """Text of the first "[^label]: text" definition line, or None."""
    m = definition_text_pattern(label).search(content)
    if not m:
        return None
    text = m.group(1).strip()
    return text or None


def split_frontmatter(content: str) -> Tuple[str, str]:
    """Split a leading '---' metadata block from the body without parsing it.

    Returns (frontmatter_block, body); the block keeps its delimiters and
    trailing newline so ``block + body`` reproduces the input exactly.
    """
    if not content:
        return "", ""
    m = PATTERN_FRONTMATTER.match(content)
    if not m:
        return "", content
    return content[: m.end()], content[m.end() :]


def truncate(text: str, limit: int = 50) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text
