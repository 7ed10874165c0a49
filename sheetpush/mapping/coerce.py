from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from typing import Any, Union

import numpy as np
import pandas as pd

"""Cell coercion: raw grid cell -> typed scalar (None / bool / number / str).

Total function, never raises. The conversion is intentionally naive and lossy:

- "007" becomes 7 (leading zeros are lost)
- "1e3" becomes 1000.0, "0x1F" becomes 31
- "true" / "false" can never be stored as strings
- a whitespace-only cell becomes 0 (numeric parse of the empty trimmed string)

Callers that need any of these values verbatim must format the column as
something non-numeric in the sheet; the coercion itself is not "smarter".
"""

__all__ = [
    "TypedScalar",
    "coerce",
    "is_missing",
]

TypedScalar = Union[None, bool, int, float, str]

# Decimal literal accepted by the numeric parse (no digit separators)
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_PREFIXED_RE = re.compile(r"^0(?P<kind>[xXoObB])(?P<digits>[0-9A-Fa-f]+)$")
_PREFIX_BASE = {"x": 16, "o": 8, "b": 2}


def is_missing(value: Any) -> bool:
    """True for the empty markers a grid can produce ("", None, NaN, NaT, pd.NA)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # array-like cells are never "missing"
        return False


def _parse_number(text: str) -> int | float | None:
    if text == "":
        return 0
    m = _PREFIXED_RE.match(text)
    if m:
        try:
            return int(m.group("digits"), _PREFIX_BASE[m.group("kind").lower()])
        except ValueError:
            return None
    if not _DECIMAL_RE.match(text):
        return None
    if _INT_RE.match(text):
        return int(text)
    number = float(text)
    if not math.isfinite(number):
        return None
    return number


def coerce(value: Any) -> TypedScalar:
    if is_missing(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        # numbers pass through unchanged (NumPy scalars unwrapped for JSON)
        return value.item() if isinstance(value, np.generic) else value
    if isinstance(value, (datetime, date, time)):
        value = value.isoformat()

    text = str(value).strip()
    if text == "true":
        return True
    if text == "false":
        return False
    number = _parse_number(text)
    return text if number is None else number
