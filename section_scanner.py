# -*- coding: utf-8 -*-
########################
# section_scanner.py
########################
# Purpose:
# - Split chart text into (section name, content) pairs for each supported syntax.
# - Dispatch each pair to a per-format handler table.
#
# Design notes:
# - Scanners only split text. They never interpret values.
# - Input is expected to be comment-stripped already (text_utils.remove_comments).
# - Quaver .qua files are YAML and are loaded by qua_store, then dispatched as (key, value) pairs.
# - Names without a handler are skipped so unknown fields never abort parsing.
#
########################
# Interfaces:
# Public types:
# - Handler = Callable[[Any], None]
#
# Public functions:
# - scan_bracket_sections(text) -> Iterator[tuple[str, str]]       # osu: [Section] headers
# - scan_hash_tags(text) -> Iterator[tuple[str, str]]              # StepMania: #TAG:value;
# - dispatch_sections(sections, handlers, *, format_name) -> None
# - dispatch_key_values(content, handlers, *, format_name) -> None
#
########################

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Tuple

from text_utils import parse_key_value

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
KeyValueHandler = Callable[[str], None]


def scan_bracket_sections(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (name, content) for each '[Name]' header. Lines before the first header are skipped."""
    current_name = ""
    current_lines: List[str] = []

    for raw_line in str(text).splitlines():
        line_text = raw_line.strip()
        if len(line_text) > 2 and line_text.startswith("[") and line_text.endswith("]"):
            if current_name:
                yield current_name, "\n".join(current_lines)
            current_name = line_text[1:-1].strip()
            current_lines = []
            continue
        if current_name and line_text:
            current_lines.append(line_text)

    if current_name:
        yield current_name, "\n".join(current_lines)


def scan_hash_tags(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (TAG, value) for each '#TAG:value;' field; split on the first colon only."""
    for field_text in str(text).split(";"):
        marker_index = field_text.find("#")
        if marker_index < 0:
            continue
        field_body = field_text[marker_index + 1:]
        if ":" not in field_body:
            continue
        tag_text, value_text = field_body.split(":", 1)
        tag_name = tag_text.strip().upper()
        if tag_name:
            yield tag_name, value_text.strip()


def dispatch_sections(
    sections: Iterable[Tuple[str, Any]],
    handlers: Mapping[str, Handler],
    *,
    format_name: str,
) -> None:
    for section_name, content in sections:
        handler = handlers.get(section_name)
        if handler is None:
            logger.debug("%s: ignoring section %r", format_name, section_name)
            continue
        handler(content)


def dispatch_key_values(
    content: str,
    handlers: Mapping[str, KeyValueHandler],
    *,
    format_name: str,
) -> None:
    for line_text in str(content).splitlines():
        parsed = parse_key_value(line_text)
        if parsed is None:
            continue
        key_text, value_text = parsed
        handler = handlers.get(key_text)
        if handler is None:
            logger.debug("%s: ignoring key %r", format_name, key_text)
            continue
        handler(value_text)

