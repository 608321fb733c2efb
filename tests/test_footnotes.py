import os
import sys

# Ensure project root is on sys.path for direct module imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from footnotes import ensure_footnote_definitions, ensure_footnotes_section
from registry import CitationRegistry


def _registry():
    return CitationRegistry("unused.json")


def test_missing_definition_gets_placeholder():
    updated, added = ensure_footnote_definitions("See [^a1b2c3].", _registry())
    assert updated == "See [^a1b2c3].\n\n[^a1b2c3]: Citation text needed."
    assert added == 1


def test_missing_definition_uses_registry_text():
    reg = _registry()
    reg.upsert("a1b2c3", source_text="Known source.")
    updated, added = ensure_footnote_definitions("See [^a1b2c3].\n", reg)
    assert updated == "See [^a1b2c3].\n\n[^a1b2c3]: Known source.\n"
    assert added == 1


def test_repeated_reference_gets_one_definition():
    updated, added = ensure_footnote_definitions("A [^a1b2c3] B [^a1b2c3] C [^b2c3d4]", _registry())
    assert added == 2
    assert updated.count("[^a1b2c3]:") == 1
    assert updated.endswith("[^a1b2c3]: Citation text needed.\n[^b2c3d4]: Citation text needed.")


def test_existing_definition_is_kept():
    text = "See [^a1b2c3].\n\n[^a1b2c3]: Source."
    assert ensure_footnote_definitions(text, _registry()) == (text, 0)


def test_section_inserted_before_first_definition():
    text = "Intro [^a1b2c3].\n\n[^a1b2c3]: Source."
    updated, added = ensure_footnotes_section(text)
    assert added is True
    assert updated == "Intro [^a1b2c3].\n\n# Footnotes\n\n***\n\n[^a1b2c3]: Source."


def test_section_not_appended_at_end():
    text = "Intro [^a1b2c3].\n\n[^a1b2c3]: Source.\n\nClosing remarks.\n"
    updated, added = ensure_footnotes_section(text)
    assert added is True
    assert updated.index("# Footnotes") < updated.index("[^a1b2c3]: Source.")
    assert updated.endswith("[^a1b2c3]: Source.\n\nClosing remarks.\n")


def test_existing_header_is_detected_case_insensitively():
    text = "Intro [^a1b2c3].\n\n# footnotes\n\n[^a1b2c3]: Source."
    assert ensure_footnotes_section(text) == (text, False)


def test_header_mentioned_inline_does_not_count():
    text = "We call it # Footnotes here [^a1b2c3].\n\n[^a1b2c3]: Source."
    updated, added = ensure_footnotes_section(text)
    assert added is True


def test_no_citations_means_no_section():
    text = "Plain prose without citations.\n"
    assert ensure_footnotes_section(text) == (text, False)


def test_references_without_definitions_mean_no_section():
    text = "See [^a1b2c3]."
    assert ensure_footnotes_section(text) == (text, False)


def test_custom_header_and_separator():
    text = "Intro [^a1b2c3].\n\n[^a1b2c3]: Source."
    updated, _ = ensure_footnotes_section(text, "## Notes", "---")
    assert updated == "Intro [^a1b2c3].\n\n## Notes\n\n---\n\n[^a1b2c3]: Source."


def test_document_starting_with_definition():
    updated, added = ensure_footnotes_section("[^a1b2c3]: Source.")
    assert added is True
    assert updated == "# Footnotes\n\n***\n\n[^a1b2c3]: Source."


def test_existing_header_at_another_level_is_detected():
    text = "Intro [^a1b2c3].\n\n## Footnotes\n\n[^a1b2c3]: Source."
    assert ensure_footnotes_section(text) == (text, False)


def test_existing_header_with_crlf_is_detected():
    text = "Intro [^a1b2c3].\r\n\r\n# Footnotes\r\n\r\n[^a1b2c3]: Source.\r\n"
    assert ensure_footnotes_section(text) == (text, False)


def test_plain_text_header_matches_whole_line_only():
    text = "Intro [^a1b2c3].\n\nFootnotes\n\n[^a1b2c3]: Source."
    assert ensure_footnotes_section(text, "Footnotes") == (text, False)
    updated, added = ensure_footnotes_section("Footnotes below [^a1b2c3].\n\n[^a1b2c3]: Source.", "Footnotes")
    assert added is True
