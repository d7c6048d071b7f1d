from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..constants import (
    COURSE_INFO_KEYWORDS,
    COURSE_INFOS,
    EVALUATION_KEYWORDS,
    EVALUATIONS,
)
from .names import collapse_whitespace

KeywordTable = Sequence[tuple[Iterable[str], str]]


def match_keyword(
    value: Optional[str], choices: Sequence[str], table: KeywordTable
) -> Optional[str]:
    """Map free text onto one of ``choices``.

    An exact (case-insensitive) choice wins; otherwise the table rows are
    scanned in order and the first row with a keyword contained in the text
    decides. Returns ``None`` when nothing matches.
    """

    text = collapse_whitespace(value).lower()
    if not text:
        return None
    for choice in choices:
        if text == choice.lower():
            return choice
    for keywords, canonical in table:
        if any(keyword in text for keyword in keywords):
            return canonical
    return None


def normalize_evaluation(value: Optional[str]) -> Optional[str]:
    return match_keyword(value, EVALUATIONS, EVALUATION_KEYWORDS)


def normalize_course_info(value: Optional[str]) -> Optional[str]:
    return match_keyword(value, COURSE_INFOS, COURSE_INFO_KEYWORDS)
