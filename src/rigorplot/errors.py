"""Structured error types for parse-stage and evaluation-stage separation."""

from __future__ import annotations


class RigorPlotError(Exception):
    """Base class for structured rigorplot errors."""


class ParseError(RigorPlotError):
    """Recoverable failure to parse relation text.

    `offset` is the 0-based character offset of the furthest failure; `line`
    and `column` are 1-based and `line_text` is the offending line.
    """

    def __init__(self, message: str, source: str, offset: int) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.offset = max(0, min(offset, len(source)))
        line_start = source.rfind("\n", 0, self.offset) + 1
        line_end = source.find("\n", self.offset)
        if line_end < 0:
            line_end = len(source)
        self.line = source.count("\n", 0, self.offset) + 1
        self.column = self.offset - line_start + 1
        self.line_text = source[line_start:line_end].rstrip("\r")

    def __str__(self) -> str:
        caret = " " * (self.column - 1) + "^"
        return f"{self.message} at line {self.line}:\n{self.line_text}\n{caret}"


class InternalContractError(RigorPlotError):
    """A tree reached a stage that requires an upstream rewrite to have run first."""


class UnsupportedError(RigorPlotError):
    """Feature exists in the language but is not supported in this execution path."""
