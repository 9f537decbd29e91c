"""
Markdown <-> structural event stream, backed by mistune v3.

mistune parses to a nested token tree; preprocessors are easier to write
against a flat, ordered stream, so the tree is flattened into events and
rebuilt from them before rendering back to Markdown.

Code block bodies are split into one ``Text`` event per physical line (line
terminator kept), so line-oriented patterns can be matched event by event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Tuple, Union

import mistune
from mistune.core import BlockState
from mistune.renderers.markdown import MarkdownRenderer

# Code lines end at "\n" only, never at U+2028 or form feeds.
_CODE_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")

# Inline characters that can open a link, emphasis, code span or HTML.
_TEXT_ESCAPE_RE = re.compile(r"([\\`*_\[\]<])")


class SerializationError(RuntimeError):
    pass


@dataclass(frozen=True)
class CodeBlockStart:
    info: str
    token: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class CodeBlockEnd:
    pass


@dataclass(frozen=True)
class Text:
    content: str


@dataclass(frozen=True)
class ContainerStart:
    token: Dict[str, Any]

    @property
    def kind(self) -> str:
        return str(self.token.get("type", ""))


@dataclass(frozen=True)
class ContainerEnd:
    kind: str


@dataclass(frozen=True)
class Other:
    token: Dict[str, Any]


Event = Union[CodeBlockStart, CodeBlockEnd, Text, ContainerStart, ContainerEnd, Other]


def _markdown() -> mistune.Markdown:
    # AST mode: parse() hands back the token list instead of rendered HTML.
    return mistune.create_markdown(renderer="ast")


def iter_events(tokens: Iterable[Dict[str, Any]]) -> Iterator[Event]:
    for token in tokens:
        kind = token.get("type")
        if kind == "block_code":
            attrs = token.get("attrs") or {}
            yield CodeBlockStart(
                info=str(attrs.get("info") or ""),
                token={k: v for k, v in token.items() if k != "raw"},
            )
            for line in _CODE_LINE_RE.findall(str(token.get("raw") or "")):
                yield Text(line)
            yield CodeBlockEnd()
        elif kind == "text":
            yield Text(str(token.get("raw", "")))
        elif "children" in token:
            yield ContainerStart({k: v for k, v in token.items() if k != "children"})
            yield from iter_events(token["children"])
            yield ContainerEnd(str(kind))
        else:
            yield Other(token)


def parse_events(text: str) -> Tuple[Iterator[Event], BlockState]:
    """Parse Markdown into a lazy event stream.

    The returned state carries document-level data (reference link
    definitions) that ``render_events`` needs to emit them again.
    """
    tokens, state = _markdown().parse(text)
    return iter_events(tokens), state


def build_tokens(events: Iterable[Event]) -> List[Dict[str, Any]]:
    root: List[Dict[str, Any]] = []
    stack: List[Tuple[str, List[Dict[str, Any]]]] = [("", root)]
    code: Dict[str, Any] | None = None

    for event in events:
        if code is not None:
            if isinstance(event, Text):
                code["raw"] += event.content
                continue
            if isinstance(event, CodeBlockEnd):
                stack[-1][1].append(code)
                code = None
                continue
            raise SerializationError(
                f"unexpected {type(event).__name__} event inside a code block"
            )

        if isinstance(event, CodeBlockStart):
            code = dict(event.token)
            code.setdefault("type", "block_code")
            code["raw"] = ""
        elif isinstance(event, CodeBlockEnd):
            raise SerializationError("CodeBlockEnd without a matching CodeBlockStart")
        elif isinstance(event, Text):
            stack[-1][1].append({"type": "text", "raw": event.content})
        elif isinstance(event, ContainerStart):
            token = dict(event.token)
            token["children"] = []
            stack[-1][1].append(token)
            stack.append((event.kind, token["children"]))
        elif isinstance(event, ContainerEnd):
            if len(stack) == 1:
                raise SerializationError(
                    f"unbalanced events: end of '{event.kind}' with nothing open"
                )
            if stack[-1][0] != event.kind:
                raise SerializationError(
                    f"unbalanced events: end of '{event.kind}' while "
                    f"'{stack[-1][0]}' is open"
                )
            stack.pop()
        else:
            stack[-1][1].append(event.token)

    if code is not None:
        raise SerializationError("unterminated code block at end of events")
    if len(stack) > 1:
        raise SerializationError(f"unterminated '{stack[-1][0]}' at end of events")
    return root


class EventMarkdownRenderer(MarkdownRenderer):
    """MarkdownRenderer that keeps literal inline text literal.

    mistune unescapes ``\\[`` and friends into plain text tokens; writing the
    bare character back would turn it into a link, emphasis or HTML on the
    next parse, so those characters are escaped again.
    """

    def text(self, token: Dict[str, Any], state: BlockState) -> str:
        return _TEXT_ESCAPE_RE.sub(r"\\\1", str(token["raw"]))


def render_events(events: Iterable[Event], state: BlockState) -> str:
    tokens = build_tokens(events)
    try:
        return EventMarkdownRenderer()(tokens, state)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SerializationError(f"markdown renderer failed: {exc}") from exc
