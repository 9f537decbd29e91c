from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

PREPROCESSOR_KEY = "scala-wrapper"

DEFAULT_LANGUAGE = "scala"
DEFAULT_WRAPPER_START = r"object wrapper.*\{"
DEFAULT_WRAPPER_END = r"^\}"


def compile_pattern(pattern: str, *, context: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise RuntimeError(f"invalid regular expression for {context}: {pattern!r}: {exc}") from exc


@dataclass(frozen=True)
class WrapperConfig:
    language: str = DEFAULT_LANGUAGE
    wrapper_start: re.Pattern[str] = field(
        default_factory=lambda: re.compile(DEFAULT_WRAPPER_START)
    )
    wrapper_end: re.Pattern[str] = field(
        default_factory=lambda: re.compile(DEFAULT_WRAPPER_END)
    )
    warn_unterminated: bool = False

    @classmethod
    def from_table(cls, table: Optional[Dict[str, Any]]) -> "WrapperConfig":
        """Build a config from a ``[preprocessor.scala-wrapper]`` table.

        Keys mdBook itself consumes (``command``, ``renderers``, ``before``,
        ``after``) are ignored.
        """
        table = table or {}
        if not isinstance(table, dict):
            raise RuntimeError(f"preprocessor.{PREPROCESSOR_KEY} must be a table")

        def get_str(key: str, default: str) -> str:
            value = table.get(key, default)
            if not isinstance(value, str) or not value:
                raise RuntimeError(
                    f"preprocessor.{PREPROCESSOR_KEY}.{key} must be a non-empty string"
                )
            return value

        warn = table.get("warn-unterminated", False)
        if not isinstance(warn, bool):
            raise RuntimeError(
                f"preprocessor.{PREPROCESSOR_KEY}.warn-unterminated must be a boolean"
            )

        return cls(
            language=get_str("language", DEFAULT_LANGUAGE),
            wrapper_start=compile_pattern(
                get_str("wrapper-start", DEFAULT_WRAPPER_START), context="wrapper-start"
            ),
            wrapper_end=compile_pattern(
                get_str("wrapper-end", DEFAULT_WRAPPER_END), context="wrapper-end"
            ),
            warn_unterminated=warn,
        )

    @classmethod
    def from_book_config(cls, config: Dict[str, Any]) -> "WrapperConfig":
        preprocessors = config.get("preprocessor") or {}
        if not isinstance(preprocessors, dict):
            raise RuntimeError("'preprocessor' config must be a table")
        return cls.from_table(preprocessors.get(PREPROCESSOR_KEY))


def load_book_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except OSError as exc:
        raise RuntimeError(f"Failed to read file: {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuntimeError(f"Failed to parse TOML: {path}: {exc}") from exc
    if not isinstance(data, dict):
        return {}
    return data
