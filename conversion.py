from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from code_spans import restore_code_spans
from models import CodeSpan, ConversionStats
from patterns import (
    PATTERN_CARETLESS_CITATION,
    PATTERN_NUMERIC_BRACKET_RUN,
    PATTERN_NUMERIC_CITATION,
    hex_definition_pattern,
    hex_citation_pattern,
    numeric_label_pattern,
)
from registry import CitationRegistry
from utils import extract_citation_text, mint_hex_id, truncate

logger = logging.getLogger(__name__)


def convert_citations_to_caret(content: str) -> str:
    """[12] -> [^12], leaving Markdown links and link references alone."""
    return PATTERN_NUMERIC_BRACKET_RUN.sub(
        lambda m: PATTERN_CARETLESS_CITATION.sub(r"[^\1]", m.group(0)), content
    )


def _group_numeric_citations(content: str) -> Dict[str, List[Tuple[int, int]]]:
    # label -> occurrence spans, in first-seen order
    groups: Dict[str, List[Tuple[int, int]]] = {}
    for m in PATTERN_NUMERIC_CITATION.finditer(content):
        groups.setdefault(m.group(1), []).append(m.span())
    return groups


def _resolve_hex_id(
    registry: CitationRegistry,
    label: str,
    citation_text: Optional[str],
    hex_length: int,
    taken: Set[str],
) -> str:
    existing = registry.find_by_text(citation_text)
    if existing is not None and len(existing.hex_id) == hex_length:
        logger.debug("Reusing hex id %s for citation: %s", existing.hex_id, truncate(citation_text or "", 30))
        return existing.hex_id
    hex_id = mint_hex_id(hex_length, taken)
    taken.add(hex_id)
    # Reserve the id right away so later labels cannot mint it again
    if citation_text:
        registry.upsert(hex_id, source_text=citation_text)
    else:
        registry.upsert(hex_id)
    logger.debug("Generated new hex id %s for citation %s", hex_id, label)
    return hex_id


def convert_numeric_citations_to_hex(
    content: str,
    registry: CitationRegistry,
    hex_length: int = 6,
    code_spans: Optional[List[CodeSpan]] = None,
) -> Tuple[str, ConversionStats, Dict[str, str]]:
    """Rewrite every [^N] reference and [^N]: definition to its hex id.

    ``code_spans`` restores protected code inside definition texts before
    they are compared against the registry.

    Returns (updated content, stats, label -> hex id map).
    """
    stats = ConversionStats()

    # Discovery
    groups = _group_numeric_citations(content)
    stats.numeric_citations_found = sum(len(spans) for spans in groups.values())
    existing_hex = hex_citation_pattern(hex_length).findall(content)
    stats.existing_hex_citations = len(existing_hex)
    if not groups:
        return content, stats, {}

    # Text extraction
    citation_texts: Dict[str, Optional[str]] = {}
    for label in groups:
        text = extract_citation_text(content, label)
        if text and code_spans:
            text = restore_code_spans(text, code_spans)
        citation_texts[label] = text

    # Identifier resolution
    # Ids already used in the registry or in this document are off limits
    taken: Set[str] = set(registry) | set(existing_hex)
    hex_mappings: Dict[str, str] = {}
    for label in groups:
        hex_mappings[label] = _resolve_hex_id(registry, label, citation_texts[label], hex_length, taken)
        stats.conversions_performed += 1

    # Replacement, one label at a time; "[^1]" never matches inside "[^12]"
    updated = content
    for label, hex_id in hex_mappings.items():
        updated = numeric_label_pattern(label).sub(lambda _m, h=hex_id: f"[^{h}]", updated)

    ids = list(hex_mappings.values())
    shared = {h for h in ids if ids.count(h) > 1}
    if shared:
        updated = _drop_repeated_definitions(updated, shared, hex_length)

    return updated, stats, hex_mappings


def _drop_repeated_definitions(content: str, shared: Set[str], hex_length: int) -> str:
    # Labels merged into one id leave identical definition lines behind; keep the first
    definition = hex_definition_pattern(hex_length)
    seen: Set[str] = set()
    kept: List[str] = []
    dropped_last = False
    for line in content.splitlines(keepends=True):
        m = definition.match(line)
        key = line.strip()
        if m and m.group(1) in shared:
            if key in seen:
                dropped_last = True
                continue
            seen.add(key)
        kept.append(line)
        dropped_last = False
    # A dropped final line had no newline after it; neither should the new last line
    if dropped_last and not content.endswith("\n") and kept:
        kept[-1] = kept[-1].rstrip("\r\n")
    return "".join(kept)
