#!/usr/bin/env python3
"""
mdBook preprocessor that removes the ``object wrapper`` from Scala examples.

Book authors wrap snippets as ``object wrapper extends App { ... }`` so they
compile on their own; readers only need the body. For every code block tagged
with the configured language, the opening line and its closing ``}`` are
dropped and everything else in the chapter is re-emitted as Markdown.

Usage from ``book.toml``::

    [preprocessor.scala-wrapper]
    command = "python3 scripts/preprocess/scala_wrapper.py"
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


import argparse
import dataclasses
import json
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence

from _lib.book import Book, Chapter, PreprocessorContext, parse_preprocessor_input
from _lib.io_helpers import eprint, read_stdin_text, read_text, write_text
from preprocess.md_events import (
    CodeBlockEnd,
    CodeBlockStart,
    Event,
    SerializationError,
    Text,
    parse_events,
    render_events,
)
from preprocess.wrapper_config import WrapperConfig, load_book_toml


class PreprocessorError(RuntimeError):
    pass


class FenceState(Enum):
    OUTSIDE = "outside"
    FIRST_LINE = "first-line"
    INSIDE_WRAPPED = "inside-wrapped"
    INSIDE_UNWRAPPED = "inside-unwrapped"


class WrapperStripper:
    """Drop wrapper lines from target-language code blocks in an event stream.

    A block is classified once, from its first text line: if that line opens
    a wrapper the block is wrapped, otherwise it passes through untouched.
    Inside a wrapped block every line matching ``wrapper_end`` is dropped.
    Lines before the first closing line are held until it shows up; if the
    block ends without one they are dropped, so an unterminated wrapper
    leaves the block empty instead of failing. Lines after the first closing
    line pass straight through.

    ``unterminated`` counts blocks where no closing line was seen and
    ``dropped`` counts suppressed events.
    """

    def __init__(self, config: WrapperConfig) -> None:
        self.config = config
        self.unterminated = 0
        self.dropped = 0

    def __call__(self, events: Iterable[Event]) -> Iterator[Event]:
        state = FenceState.OUTSIDE
        pending: List[Event] = []
        closed = False

        for event in events:
            if isinstance(event, CodeBlockStart):
                if event.info == self.config.language:
                    state = FenceState.FIRST_LINE
                yield event

            elif isinstance(event, CodeBlockEnd):
                if state is FenceState.INSIDE_WRAPPED and not closed:
                    self.unterminated += 1
                    self.dropped += len(pending)
                state = FenceState.OUTSIDE
                pending = []
                closed = False
                yield event

            elif isinstance(event, Text):
                if state is FenceState.FIRST_LINE:
                    if self.config.wrapper_start.search(event.content):
                        state = FenceState.INSIDE_WRAPPED
                        self.dropped += 1
                        continue
                    state = FenceState.INSIDE_UNWRAPPED
                elif state is FenceState.INSIDE_WRAPPED:
                    if self.config.wrapper_end.match(event.content):
                        self.dropped += 1
                        if not closed:
                            closed = True
                            yield from pending
                            pending = []
                        continue
                    if not closed:
                        pending.append(event)
                        continue
                yield event

            else:
                yield event


class ScalaWrapperPreprocessor:
    name = "scala-wrapper-preprocessor"

    def __init__(self, config: Optional[WrapperConfig] = None) -> None:
        self.config = config or WrapperConfig()

    def supports_renderer(self, renderer: str) -> bool:
        return True

    def strip_text(self, content: str, *, label: str) -> str:
        events, state = parse_events(content)
        stripper = WrapperStripper(self.config)
        try:
            out = render_events(stripper(events), state)
        except SerializationError as exc:
            raise PreprocessorError(
                f"Markdown serialization failed within {self.name}: {exc}"
            ) from exc
        if stripper.unterminated and self.config.warn_unterminated:
            eprint(
                f"{self.name}: warning: {stripper.unterminated} unterminated "
                f"wrapper(s) in {label}; block content was dropped"
            )
        # Nothing was stripped: keep the author's text byte for byte.
        if not stripper.dropped:
            return content
        return out

    def remove_wrappers(self, chapter: Chapter) -> str:
        return self.strip_text(chapter.content, label=f"chapter '{chapter.name}'")

    def run(self, ctx: PreprocessorContext, book: Book) -> Book:
        eprint(f"Running '{self.name}' preprocessor")
        for chapter in book.iter_chapters():
            eprint(f"{self.name}: processing chapter '{chapter.name}'")
            chapter.content = self.remove_wrappers(chapter)
        return book


def cmd_preprocess(args: argparse.Namespace) -> int:
    ctx, book = parse_preprocessor_input(read_stdin_text())
    preprocessor = ScalaWrapperPreprocessor(WrapperConfig.from_book_config(ctx.config))
    preprocessor.run(ctx, book)
    sys.stdout.write(json.dumps(book.to_json(), ensure_ascii=False))
    return 0


def cmd_supports(args: argparse.Namespace) -> int:
    return 0 if ScalaWrapperPreprocessor().supports_renderer(args.renderer) else 1


def cmd_strip(args: argparse.Namespace) -> int:
    if args.book_toml:
        config = WrapperConfig.from_book_config(load_book_toml(Path(args.book_toml)))
    else:
        config = WrapperConfig()
    if args.language:
        config = dataclasses.replace(config, language=args.language)

    preprocessor = ScalaWrapperPreprocessor(config)
    for path in args.files:
        try:
            text = read_text(path)
        except OSError as exc:
            raise RuntimeError(f"Failed to read file: {path}: {exc}") from exc

        out = preprocessor.strip_text(text, label=path)
        if args.in_place:
            write_text(path, out)
            eprint(f"{preprocessor.name}: rewrote {path}")
        else:
            sys.stdout.write(out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "mdBook preprocessor that strips 'object wrapper' declarations "
            "from Scala code blocks. Without a sub-command, reads "
            "[context, book] JSON on stdin and writes the book to stdout."
        )
    )
    sub = parser.add_subparsers(dest="cmd")

    s = sub.add_parser("supports", help="Report whether a renderer is supported")
    s.add_argument("renderer")
    s.set_defaults(func=cmd_supports)

    st = sub.add_parser("strip", help="Strip wrappers from standalone Markdown files")
    st.add_argument("files", nargs="+", help="Markdown files to process.")
    st.add_argument(
        "--language",
        default=None,
        help="Code fence language tag to process (default: from config, else scala).",
    )
    st.add_argument(
        "--book-toml",
        default=None,
        help="Read [preprocessor.scala-wrapper] settings from this book.toml.",
    )
    st.add_argument(
        "--in-place",
        action="store_true",
        help="Rewrite the files instead of printing to stdout.",
    )
    st.set_defaults(func=cmd_strip)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", cmd_preprocess)
    try:
        return int(func(args))
    except RuntimeError as exc:
        eprint(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
