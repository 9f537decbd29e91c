from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType

import pytest


def load_module() -> ModuleType:
    repo_root = Path(__file__).resolve().parents[2]
    module_path = repo_root / "scripts" / "_lib" / "book.py"
    spec = importlib.util.spec_from_file_location("book", module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Failed to load module spec: {module_path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


MODULE = load_module()


BOOK_JSON = {
    "sections": [
        {
            "Chapter": {
                "name": "Intro",
                "content": "# Intro\n",
                "number": [1],
                "sub_items": [
                    {
                        "Chapter": {
                            "name": "Details",
                            "content": "details\n",
                            "number": [1, 1],
                            "sub_items": [],
                            "path": "intro/details.md",
                            "source_path": "intro/details.md",
                            "parent_names": ["Intro"],
                        }
                    }
                ],
                "path": "intro.md",
                "source_path": "intro.md",
                "parent_names": [],
                "future_field": {"kept": True},
            }
        },
        "Separator",
        {"PartTitle": "Reference"},
        {
            "Chapter": {
                "name": "Appendix",
                "content": "appendix\n",
                "number": None,
                "sub_items": [],
                "path": None,
                "source_path": None,
                "parent_names": [],
            }
        },
    ],
    "__non_exhaustive": None,
}


def test_round_trip_preserves_unknown_fields() -> None:
    book = MODULE.Book.from_json(BOOK_JSON)
    assert book.to_json() == BOOK_JSON


def test_iter_items_is_document_order() -> None:
    book = MODULE.Book.from_json(BOOK_JSON)
    kinds = [type(item).__name__ for item in book.iter_items()]
    assert kinds == ["Chapter", "Chapter", "Separator", "PartTitle", "Chapter"]


def test_iter_chapters_skips_structural_items() -> None:
    book = MODULE.Book.from_json(BOOK_JSON)
    assert [c.name for c in book.iter_chapters()] == ["Intro", "Details", "Appendix"]


def test_chapter_content_is_mutable_in_place() -> None:
    book = MODULE.Book.from_json(BOOK_JSON)
    for chapter in book.iter_chapters():
        chapter.content = chapter.content.upper()
    out = book.to_json()
    intro = out["sections"][0]["Chapter"]
    assert intro["content"] == "# INTRO\n"
    assert intro["sub_items"][0]["Chapter"]["content"] == "DETAILS\n"


def test_unsupported_item_raises() -> None:
    with pytest.raises(RuntimeError, match="unsupported book item"):
        MODULE.Book.from_json({"sections": [{"Draft": {}}]})


def test_chapter_without_content_raises() -> None:
    with pytest.raises(RuntimeError, match="missing a string 'content'"):
        MODULE.Book.from_json({"sections": [{"Chapter": {"name": "x"}}]})


def test_book_without_sections_raises() -> None:
    with pytest.raises(RuntimeError, match="'sections' list"):
        MODULE.Book.from_json({})


def test_context_defaults() -> None:
    ctx = MODULE.PreprocessorContext.from_json({"config": "nope"})
    assert ctx.root == "."
    assert ctx.config == {}
    assert ctx.renderer == ""


def test_parse_preprocessor_input() -> None:
    raw = json.dumps(
        [
            {
                "root": "/book",
                "config": {"book": {"title": "T"}},
                "renderer": "html",
                "mdbook_version": "0.4.40",
            },
            BOOK_JSON,
        ]
    )
    ctx, book = MODULE.parse_preprocessor_input(raw)
    assert ctx.root == "/book"
    assert ctx.renderer == "html"
    assert ctx.mdbook_version == "0.4.40"
    assert ctx.config["book"]["title"] == "T"
    assert len(book.sections) == 4


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("", "no preprocessor input"),
        ("   \n", "no preprocessor input"),
        ("{invalid", "invalid preprocessor input JSON"),
        ("[1, 2, 3]", r"\[context, book\] array"),
        ('{"a": 1}', r"\[context, book\] array"),
        ('[[], {"sections": []}]', "context must be a JSON object"),
    ],
)
def test_parse_preprocessor_input_errors(raw: str, message: str) -> None:
    with pytest.raises(RuntimeError, match=message):
        MODULE.parse_preprocessor_input(raw)
