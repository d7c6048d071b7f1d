"""Name utilities for learner records."""

from __future__ import annotations

import re
from typing import Optional

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(value: Optional[str]) -> str:
    """Trim and collapse internal runs of whitespace to single spaces."""

    return _WHITESPACE_RE.sub(" ", value or "").strip()


def normalize_full_name(full_name: Optional[str]) -> str:
    """Return the comparison key for a learner name.

    ``"  Jane   DOE "`` and ``"jane doe"`` share the key ``"jane doe"``.
    """

    return collapse_whitespace(full_name).lower()
