# -*- coding: utf-8 -*-
########################
# text_utils.py
########################
# Purpose:
# - Small line-oriented text helpers used by all chart formats.
#
########################
# Interfaces:
# Public functions:
# - remove_comments(text: str, comment_prefix: str) -> str
# - parse_key_value(line: str) -> Optional[tuple[str, str]]
# - split_trimmed(text: str, separator: str, *, drop_empty: bool = False) -> list[str]
# - or_default_empty(value: str, default: str) -> str
# - or_default_empty_as(value: str, default, value_type) -> value_type
# - format_number(value: float) -> str
#
########################

from __future__ import annotations

from typing import Callable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def remove_comments(text: str, comment_prefix: str) -> str:
    """Drop everything after comment_prefix on each line, then drop blank lines."""
    kept_lines: List[str] = []
    for line in str(text).splitlines():
        content = line.split(comment_prefix, 1)[0]
        if content.strip():
            kept_lines.append(content)
    return "\n".join(kept_lines)


def parse_key_value(line: str) -> Optional[Tuple[str, str]]:
    """Split 'key: value' on the first colon. Returns None when there is no colon."""
    line_text = str(line)
    if ":" not in line_text:
        return None
    key_text, value_text = line_text.split(":", 1)
    return key_text.strip(), value_text.strip()


def split_trimmed(text: str, separator: str, *, drop_empty: bool = False) -> List[str]:
    parts = [part.strip() for part in str(text).split(separator)]
    if drop_empty:
        return [part for part in parts if part]
    return parts


def or_default_empty(value: Optional[str], default: str) -> str:
    trimmed = str(value or "").strip()
    return trimmed if trimmed else str(default)


def or_default_empty_as(value: Optional[str], default: T, value_type: Callable[[str], T]) -> T:
    """Coerce value with value_type, falling back to default when empty or unparsable.

    A default that cannot itself be coerced is a programming error and raises ValueError.
    """
    trimmed = str(value or "").strip()
    if not trimmed:
        return default
    try:
        return value_type(trimmed)
    except ValueError:
        pass
    try:
        return value_type(str(default))
    except ValueError as exc:
        raise ValueError(
            f"Failed to parse {trimmed!r} or default {default!r} as {getattr(value_type, '__name__', value_type)}"
        ) from exc


def format_number(value: float) -> str:
    """Shortest round-trippable text for a number, without a trailing '.0'."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)
