#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable, List, Optional

from dotenv import load_dotenv

from code_spans import extract_code_spans, restore_code_spans
from conversion import convert_citations_to_caret, convert_numeric_citations_to_hex
from footnotes import ensure_footnote_definitions, ensure_footnotes_section
from models import CitationConfig, CodeSpan, ProcessingResult, ProcessingStats
from patterns import hex_citation_pattern
from registry import CitationRegistry, RegistryError
from spacing import fix_citation_spacing
from utils import PLACEHOLDER_DEFINITION_TEXT, extract_citation_text, split_frontmatter

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".mdx")


class RegistrySaveError(RegistryError):
    """The document was processed but the registry could not be written.

    ``result`` holds the finished text so the caller can still write the
    document and retry ``registry.save()`` on its own.
    """

    def __init__(self, message: str, result: ProcessingResult) -> None:
        super().__init__(message)
        self.result = result


def _sync_registry(
    body: str, document_id: str, registry: CitationRegistry, hex_length: int, code_spans: List[CodeSpan]
) -> None:
    seen: List[str] = []
    for hex_id in hex_citation_pattern(hex_length).findall(body):
        if hex_id in seen:
            continue
        seen.append(hex_id)
        text = extract_citation_text(body, hex_id)
        if text:
            text = restore_code_spans(text, code_spans)
        # The placeholder is not a source text and must never become a dedup key
        if text and text != PLACEHOLDER_DEFINITION_TEXT:
            registry.upsert(hex_id, source_text=text)
        elif hex_id not in registry:
            registry.upsert(hex_id)
        registry.record_file_reference(hex_id, document_id)


def process_citations(
    content: str,
    document_id: str,
    registry: CitationRegistry,
    config: Optional[CitationConfig] = None,
    *,
    load: bool = True,
    save: bool = True,
) -> ProcessingResult:
    """Normalize every citation in one document body.

    Runs: protect code, add missing carets, numeric -> hex, complete
    footnotes, ensure the footnotes section, fix spacing, restore code.
    The registry is loaded first and saved last unless told otherwise.
    Raises RegistrySaveError when only the final save fails.
    """
    config = config or CitationConfig()
    hex_length = config.hex_length
    if load:
        registry.load()

    protected, placeholders = extract_code_spans(content)
    body = convert_citations_to_caret(protected)
    body, conversion_stats, _ = convert_numeric_citations_to_hex(
        body, registry, hex_length, placeholders
    )
    body, footnotes_added = ensure_footnote_definitions(body, registry, hex_length)
    body, section_added = ensure_footnotes_section(
        body,
        config.footnotes_section_header,
        config.footnotes_section_separator,
        hex_length,
    )
    body = fix_citation_spacing(body, hex_length)
    final = restore_code_spans(body, placeholders)

    # Code is still masked in ``body``, so only real markers are recorded
    _sync_registry(body, document_id, registry, hex_length, placeholders)

    result = ProcessingResult(
        updated_content=final,
        changed=final != content,
        stats=ProcessingStats(
            citations_converted=conversion_stats.conversions_performed,
            footnotes_added=footnotes_added,
            footnote_section_added=section_added,
        ),
    )
    logger.debug(
        "%s: %d citations converted, %d footnotes added, section added: %s",
        document_id,
        result.stats.citations_converted,
        result.stats.footnotes_added,
        result.stats.footnote_section_added,
    )
    if save:
        try:
            registry.save()
        except OSError as e:
            raise RegistrySaveError(f"Citation registry not saved: {e}", result) from e
    return result


def process_file(
    path: str, registry: CitationRegistry, config: CitationConfig, *, dry_run: bool = False
) -> ProcessingResult:
    """Process one Markdown file in place; the frontmatter block passes through untouched.

    A dry run writes neither the document nor the registry.
    """
    with open(path, "r", encoding="utf-8") as f:
        original = f.read()
    frontmatter, body = split_frontmatter(original)
    try:
        result = process_citations(body, path, registry, config, save=not dry_run)
    except RegistrySaveError as e:
        _write_document(path, frontmatter, e.result)
        raise
    if not dry_run:
        _write_document(path, frontmatter, result)
    return result


def _write_document(path: str, frontmatter: str, result: ProcessingResult) -> None:
    if not result.changed:
        return
    with open(path, "w", encoding="utf-8") as f:
        f.write(frontmatter + result.updated_content)


def iter_markdown_files(paths: Iterable[str]) -> List[str]:
    found: List[str] = []
    for p in paths:
        if os.path.isdir(p):
            for root, dirs, files in os.walk(p):
                dirs.sort()
                for name in sorted(files):
                    if name.lower().endswith(MARKDOWN_SUFFIXES):
                        found.append(os.path.join(root, name))
        else:
            found.append(p)
    return found


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Convert numeric footnote citations to registry-backed hex ids and complete footnotes."
    )
    parser.add_argument("paths", nargs="+", help="Markdown files or directories to process")
    parser.add_argument("--registry", help="Path to the citation registry JSON file")
    parser.add_argument("--hex-length", type=int, help="Number of hex digits in new citation ids")
    parser.add_argument("--header", help="Footnotes section header line")
    parser.add_argument("--separator", help="Line placed under the footnotes header")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing documents",
    )
    parser.add_argument(
        "--show-registry",
        action="store_true",
        help="Print every registry entry after processing",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    load_dotenv(override=False)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = CitationConfig.from_env(
            registry_path=args.registry,
            hex_length=args.hex_length,
            footnotes_section_header=args.header,
            footnotes_section_separator=args.separator,
        )
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    files = iter_markdown_files(args.paths)
    missing = [p for p in files if not os.path.isfile(p)]
    if missing:
        for p in missing:
            print(f"File not found: {p}", file=sys.stderr)
        return 2

    registry = CitationRegistry(config.registry_path)
    totals = ProcessingStats()
    changed_files = 0
    sections_added = 0
    exit_code = 0
    for path in files:
        try:
            result = process_file(path, registry, config, dry_run=bool(args.dry_run))
        except RegistrySaveError as e:
            print(f"Error: {path}: {e}", file=sys.stderr)
            result = e.result
            exit_code = 3
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: {path}: {e}", file=sys.stderr)
            exit_code = exit_code or 1
            continue

        stats = result.stats
        totals.citations_converted += stats.citations_converted
        totals.footnotes_added += stats.footnotes_added
        if stats.footnote_section_added:
            sections_added += 1
        if result.changed:
            changed_files += 1
            verb = "Would update" if args.dry_run else "Updated"
            print(f"{verb}: {path}")
        else:
            print(f"No changes needed: {path}")
        print(f"  citations converted: {stats.citations_converted}")
        print(f"  footnotes added: {stats.footnotes_added}")
        print(f"  footnote section added: {'yes' if stats.footnote_section_added else 'no'}")

    print(f"\nProcessed {len(files)} files, {changed_files} changed")
    print(f"citations converted: {totals.citations_converted}")
    print(f"footnotes added: {totals.footnotes_added}")
    print(f"footnote sections added: {sections_added}")

    if args.show_registry:
        print(f"\nCitation registry ({config.registry_path}):")
        for line in registry.summary_lines():
            print(line)

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
