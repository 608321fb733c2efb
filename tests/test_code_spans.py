import os
import sys

# Ensure project root is on sys.path for direct module imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from code_spans import extract_code_spans, restore_code_spans


def test_identical_fenced_blocks_get_their_own_placeholders():
    text = "a\n```\nx [^1]\n```\nb\n```\nx [^1]\n```\n"
    protected, spans = extract_code_spans(text)
    assert [s.kind for s in spans] == ["fenced", "fenced"]
    assert spans[0].placeholder != spans[1].placeholder
    assert "[^1]" not in protected
    assert protected.startswith("a\n") and "\nb\n" in protected
    assert restore_code_spans(protected, spans) == text


def test_fenced_block_with_language_tag():
    text = "Intro\n\n```python\nprint('[^1]')\n```\n\nOutro [^2]"
    protected, spans = extract_code_spans(text)
    assert len(spans) == 1
    assert spans[0].original == "```python\nprint('[^1]')\n```"
    assert "[^2]" in protected


def test_inline_code_inside_fence_is_not_extracted_separately():
    text = "```\nuse `[^1]` here\n```"
    protected, spans = extract_code_spans(text)
    assert [s.kind for s in spans] == ["fenced"]
    assert restore_code_spans(protected, spans) == text


def test_inline_code_is_protected():
    text = "Use `[^1]` literally, cite [^2]."
    protected, spans = extract_code_spans(text)
    assert [s.kind for s in spans] == ["inline"]
    assert spans[0].original == "`[^1]`"
    assert "[^1]" not in protected
    assert "[^2]" in protected


def test_double_backtick_inline_code():
    text = "Code ``a ` [^1]`` end"
    protected, spans = extract_code_spans(text)
    assert spans[0].original == "``a ` [^1]``"
    assert restore_code_spans(protected, spans) == text


def test_unterminated_fence_runs_to_end():
    text = "text [^2]\n```python\ncode [^1]\n"
    protected, spans = extract_code_spans(text)
    assert "[^1]" not in protected
    assert "[^2]" in protected
    assert restore_code_spans(protected, spans) == text


def test_tilde_fence():
    text = "~~~\n[^1]\n~~~\n"
    protected, spans = extract_code_spans(text)
    assert "[^1]" not in protected


def test_indented_block_after_blank_line():
    text = "Para\n\n    code [^1]\n\n    more\n\nAfter [^2]"
    protected, spans = extract_code_spans(text)
    assert [s.kind for s in spans] == ["indented"]
    assert spans[0].original == "    code [^1]\n\n    more"
    assert "[^1]" not in protected
    assert "[^2]" in protected
    assert restore_code_spans(protected, spans) == text


def test_indented_continuation_of_paragraph_is_not_code():
    text = "Para\n    continued [^1]"
    protected, spans = extract_code_spans(text)
    assert spans == []
    assert protected == text


def test_placeholders_do_not_occur_in_source():
    text = "`a` and `b` and `a`"
    protected, spans = extract_code_spans(text)
    assert len(spans) == 3
    assert len({s.placeholder for s in spans}) == 3
    for s in spans:
        assert s.placeholder not in text
        assert protected.count(s.placeholder) == 1
    assert restore_code_spans(protected, spans) == text


def test_text_without_code_is_untouched():
    text = "Plain [^1] text.\n"
    assert extract_code_spans(text) == (text, [])
