"""Decoding of list-valued recipe columns.

The source file stores ``tags``, ``steps`` and ``ingredients`` as the text of a
literal list rather than a native list, e.g.::

    ['60-minutes-or-less', 'time-to-make', "mom's favourite"]

Grammar accepted by :func:`extract_literals`::

    list    := (quoted (sep quoted)*)?
    quoted  := "'" char* "'" | '"' char* '"'
    char    := any character except the opening delimiter or a backslash
             | "\\" any character

Anything between literals (brackets, commas, whitespace) is ignored. Single-
and double-quoted literals may be mixed in one column. Unbalanced quotes are
not an error; the dangling literal is simply not matched.
"""
from __future__ import annotations

import math
import re
from typing import Any, List

from .models import ExtractedFields, RawRecord

_LITERAL_PATTERN = re.compile(r"""'((?:[^'\\]|\\.)*?)'|"((?:[^"\\]|\\.)*?)\"""", re.DOTALL)
_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)


def _is_missing(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    return not str(raw).strip()


def extract_literals(raw: Any) -> List[str]:
    """Return the trimmed, non-empty contents of every quoted literal in ``raw``."""
    if _is_missing(raw):
        return []

    values: List[str] = []
    for match in _LITERAL_PATTERN.finditer(str(raw)):
        inner = match.group(1) if match.group(1) is not None else match.group(2)
        value = _ESCAPE_PATTERN.sub(r"\1", inner).strip()
        if value:
            values.append(value)
    return values


def extract_fields(record: RawRecord) -> ExtractedFields:
    return ExtractedFields(
        tags=tuple(extract_literals(record.tags)),
        steps=tuple(extract_literals(record.steps)),
        ingredients=tuple(extract_literals(record.ingredients)),
    )
