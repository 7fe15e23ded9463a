"""
Exceptions raised by the chart pipeline.
"""
from __future__ import annotations


class BaziError(Exception):
    """Base class for chart calculation errors."""


class InvalidDateInput(BaziError, ValueError):
    """Birth date/time could not be parsed or resolved by the calendar."""

    def __init__(self, message: str, raw_input=None):
        super().__init__(message)
        self.raw_input = raw_input


class MalformedEnumInput(BaziError, ValueError):
    """A stem, branch or pillar index outside the sexagenary vocabulary."""

    def __init__(self, kind: str, value):
        super().__init__(f"无效的{kind}: {value!r}")
        self.kind = kind
        self.value = value
