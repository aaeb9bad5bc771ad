from pathlib import Path

import pytest

from forge import frontmatter as fm
from forge.errors import ErrorKind, FrontMatterError
from forge.frontmatter import FrontMatter


def test_parse_without_block_returns_input_unchanged():
    text = "# Title\n\nBody"
    meta, body = fm.parse(text)
    assert meta.is_empty()
    assert body == text


def test_parse_unclosed_block_returns_input_unchanged():
    text = "---\ntitle: Hi\nno closing line"
    meta, body = fm.parse(text)
    assert meta.is_empty()
    assert body == text


def test_scalars_keep_raw_text():
    meta, body = fm.parse("---\ntitle: Hello\ndate: 2024-01-15\ndraft: true\norder: 3\n---\nBody\n")
    assert meta.get("title") == "Hello"
    assert meta.get("date") == "2024-01-15"
    assert meta.get("draft") == "true"
    assert meta.get("order") == "3"
    assert body == "Body\n"


def test_arrays_and_tags():
    meta, _ = fm.parse("---\ntags: [python, web]\nauthors:\n  - ada\n  - grace\n---\n")
    assert meta.tags == ["python", "web"]
    assert meta.arrays["tags"] == ["python", "web"]
    assert meta.arrays["authors"] == ["ada", "grace"]
    assert not meta.has("authors")


def test_empty_value_becomes_empty_string():
    meta, _ = fm.parse("---\nsubtitle:\n---\nx")
    assert meta.has("subtitle")
    assert meta.get("subtitle") == ""


def test_get_default_for_missing_key():
    meta, _ = fm.parse("---\ntitle: A\n---\n")
    assert meta.get("date") == ""
    assert meta.get("date", "1970") == "1970"


def test_closing_line_with_crlf():
    meta, body = fm.parse("---\r\ntitle: Windows\r\n---\r\nBody")
    assert meta.get("title") == "Windows"
    assert body == "Body"


def test_malformed_yaml_raises_with_source():
    source = Path("content/blog/bad.md")
    with pytest.raises(FrontMatterError) as excinfo:
        fm.parse("---\ntitle: [unclosed\n---\nBody", source)
    assert excinfo.value.kind is ErrorKind.PARSE
    assert excinfo.value.source_path == source


def test_nested_mapping_rejected():
    with pytest.raises(FrontMatterError):
        fm.parse("---\nauthor:\n  name: Ada\n---\n")


def test_non_mapping_document_rejected():
    with pytest.raises(FrontMatterError):
        fm.parse("---\n- just\n- a list\n---\n")


def test_dump_preserves_key_set():
    original = "---\ntitle: Hello\ndate: 2024-01-15\ntags: [a, b]\n---\nBody\n"
    meta, body = fm.parse(original)
    reparsed, rebody = fm.parse(fm.dump(meta, body))
    assert reparsed.keys() == meta.keys() == {"title", "date", "tags"}
    assert reparsed.to_dict() == meta.to_dict()
    assert rebody == body


def test_dump_empty_frontmatter_is_body():
    assert fm.dump(FrontMatter(), "Body") == "Body"
