from __future__ import annotations

from typing import List, Tuple

from patterns import hex_citation_pattern, hex_definition_pattern, section_header_pattern
from registry import CitationRegistry
from utils import PLACEHOLDER_DEFINITION_TEXT


def ensure_footnote_definitions(
    content: str, registry: CitationRegistry, hex_length: int = 6
) -> Tuple[str, int]:
    """Append a definition line for every hex marker that has none.

    Text comes from the registry when known, else the placeholder text.
    Returns (updated content, number of definitions added).
    """
    defined = set(hex_definition_pattern(hex_length).findall(content))
    missing: List[str] = []
    for hex_id in hex_citation_pattern(hex_length).findall(content):
        if hex_id not in defined and hex_id not in missing:
            missing.append(hex_id)
    if not missing:
        return content, 0

    lines: List[str] = []
    for hex_id in missing:
        record = registry.get(hex_id)
        text = record.source_text if record is not None and record.source_text else PLACEHOLDER_DEFINITION_TEXT
        lines.append(f"[^{hex_id}]: {text}")

    trailing_newline = content.endswith("\n")
    body = content.rstrip()
    addition = "\n".join(lines)
    updated = f"{body}\n\n{addition}" if body else addition
    if trailing_newline:
        updated += "\n"
    return updated, len(missing)


def has_footnotes_section(content: str, header: str) -> bool:
    return bool(section_header_pattern(header).search(content))


def ensure_footnotes_section(
    content: str, header: str = "# Footnotes", separator: str = "***", hex_length: int = 6
) -> Tuple[str, bool]:
    """Insert header and separator right before the first footnote definition.

    No-op when the text has no citations, no definitions, or already has the
    header. Returns (updated content, whether the section was added).
    """
    if not hex_citation_pattern(hex_length).search(content):
        return content, False
    first_def = hex_definition_pattern(hex_length).search(content)
    if first_def is None:
        return content, False
    if has_footnotes_section(content, header):
        return content, False

    # Start of the definition's line, so indentation stays with the definition
    line_start = content.rfind("\n", 0, first_def.start()) + 1
    before = content[:line_start].rstrip()
    after = content[line_start:]
    section = f"{header}\n\n{separator}\n\n" if separator else f"{header}\n\n"
    if before:
        return f"{before}\n\n{section}{after}", True
    return f"{section}{after}", True
