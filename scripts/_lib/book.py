"""Book model exchanged with mdBook over the preprocessor protocol.

mdBook writes ``[context, book]`` as JSON to the preprocessor's stdin and
expects the (possibly modified) book back on stdout. Only the fields the
preprocessors need are modelled; anything else is carried through untouched
so the book we emit stays acceptable to newer mdBook versions.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

_CHAPTER_FIELDS = (
    "name",
    "content",
    "number",
    "sub_items",
    "path",
    "source_path",
    "parent_names",
)


@dataclass
class Chapter:
    name: str
    content: str
    number: Optional[List[int]] = None
    sub_items: List["BookItem"] = field(default_factory=list)
    path: Optional[str] = None
    source_path: Optional[str] = None
    parent_names: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Chapter":
        name = data.get("name")
        content = data.get("content")
        if not isinstance(name, str):
            raise RuntimeError(f"chapter is missing a string 'name': {data!r}")
        if not isinstance(content, str):
            raise RuntimeError(f"chapter '{name}' is missing a string 'content'")
        return cls(
            name=name,
            content=content,
            number=data.get("number"),
            sub_items=[item_from_json(x) for x in data.get("sub_items") or []],
            path=data.get("path"),
            source_path=data.get("source_path"),
            parent_names=list(data.get("parent_names") or []),
            extra={k: v for k, v in data.items() if k not in _CHAPTER_FIELDS},
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "content": self.content,
            "number": self.number,
            "sub_items": [item_to_json(x) for x in self.sub_items],
            "path": self.path,
            "source_path": self.source_path,
            "parent_names": list(self.parent_names),
        }
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class Separator:
    pass


@dataclass(frozen=True)
class PartTitle:
    title: str


BookItem = Union[Chapter, Separator, PartTitle]


def item_from_json(data: Any) -> BookItem:
    if data == "Separator":
        return Separator()
    if isinstance(data, dict) and len(data) == 1:
        ((kind, body),) = data.items()
        if kind == "Chapter" and isinstance(body, dict):
            return Chapter.from_json(body)
        if kind == "PartTitle" and isinstance(body, str):
            return PartTitle(body)
    raise RuntimeError(f"unsupported book item: {data!r}")


def item_to_json(item: BookItem) -> Any:
    if isinstance(item, Chapter):
        return {"Chapter": item.to_json()}
    if isinstance(item, PartTitle):
        return {"PartTitle": item.title}
    return "Separator"


def _walk(items: List[BookItem]) -> Iterator[BookItem]:
    for item in items:
        yield item
        if isinstance(item, Chapter):
            yield from _walk(item.sub_items)


@dataclass
class Book:
    sections: List[BookItem] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> "Book":
        if not isinstance(data, dict):
            raise RuntimeError("book must be a JSON object")
        sections = data.get("sections")
        if not isinstance(sections, list):
            raise RuntimeError("book is missing a 'sections' list")
        return cls(
            sections=[item_from_json(x) for x in sections],
            extra={k: v for k, v in data.items() if k != "sections"},
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"sections": [item_to_json(x) for x in self.sections]}
        out.update(self.extra)
        return out

    def iter_items(self) -> Iterator[BookItem]:
        """Yield every item in document order, parents before their sub-items."""
        return _walk(self.sections)

    def iter_chapters(self) -> Iterator[Chapter]:
        for item in self.iter_items():
            if isinstance(item, Chapter):
                yield item


@dataclass(frozen=True)
class PreprocessorContext:
    root: str
    config: Dict[str, Any]
    renderer: str
    mdbook_version: str

    @classmethod
    def from_json(cls, data: Any) -> "PreprocessorContext":
        if not isinstance(data, dict):
            raise RuntimeError("preprocessor context must be a JSON object")
        config = data.get("config")
        return cls(
            root=str(data.get("root") or "."),
            config=config if isinstance(config, dict) else {},
            renderer=str(data.get("renderer") or ""),
            mdbook_version=str(data.get("mdbook_version") or ""),
        )


def parse_preprocessor_input(raw: str) -> Tuple[PreprocessorContext, Book]:
    if not raw.strip():
        raise RuntimeError("no preprocessor input on stdin")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"invalid preprocessor input JSON: {exc}") from exc
    if not isinstance(data, list) or len(data) != 2:
        raise RuntimeError("preprocessor input must be a [context, book] array")
    return PreprocessorContext.from_json(data[0]), Book.from_json(data[1])
