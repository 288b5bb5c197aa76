# -*- coding: utf-8 -*-
########################
# chart_errors.py
########################
# Purpose:
# - Error taxonomy shared by every parser, writer and the conversion engine.
#
# Design notes:
# - Parsers raise ParseError subclasses; writers raise WriteError subclasses.
# - Messages carry the offending raw line or field so failures can be diagnosed without re-running.
#
########################

from __future__ import annotations


class ChartError(Exception):
    """Base error for chart parsing and writing."""


class ParseError(ChartError):
    """Raised when chart text cannot be turned into a Chart."""


class EmptyChartDataError(ParseError):
    def __init__(self) -> None:
        super().__init__("Cannot parse because empty chart data was provided")


class InvalidChartError(ParseError):
    def __init__(self, detail: str) -> None:
        self.detail = str(detail)
        super().__init__(f"Failed to parse because invalid chart data was provided or file is malformed: {self.detail}")


class InvalidModeError(ParseError):
    def __init__(self, found: str, expected: str) -> None:
        self.found = str(found)
        self.expected = str(expected)
        super().__init__(
            f"Cannot parse because '{self.found}' mode is invalid or not supported, parsing for {self.expected}"
        )


class UnsupportedFormatError(ParseError):
    def __init__(self, format_name: str = "") -> None:
        self.format_name = str(format_name)
        suffix = f": {self.format_name!r}" if self.format_name else ""
        super().__init__(f"Cannot parse because this is an unsupported file format{suffix}")


class WriteError(ChartError):
    """Raised when a Chart cannot be rendered in the requested format."""


class InvalidKeyCountError(WriteError):
    def __init__(self, key_count: int, supported: str, format_name: str) -> None:
        self.key_count = int(key_count)
        self.supported = str(supported)
        self.format_name = str(format_name)
        super().__init__(
            f"Cannot write {self.format_name} chart with {self.key_count} keys. Supported: {self.supported}"
        )
