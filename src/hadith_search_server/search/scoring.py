"""Lexical relevance scoring.

The score is purely substring based: no stemming and no diacritic folding.
Both arguments are expected to be case-folded already so one folding per
record can be shared across queries.
"""

from __future__ import annotations

from functools import lru_cache
import math
import re


OCCURRENCE_WEIGHT = 100
PREFIX_BONUS = 50
WHOLE_WORD_BONUS = 25
# Length normalization divides by sqrt(length / LENGTH_UNIT)
LENGTH_UNIT = 100


@lru_cache(maxsize=512)
def _whole_word_pattern(folded_query: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(folded_query)}(?!\w)")


def count_whole_word(folded_text: str, folded_query: str) -> int:
    """Count occurrences of the query not adjacent to a word character."""
    return sum(1 for _ in _whole_word_pattern(folded_query).finditer(folded_text))


def relevance_score(folded_text: str, folded_query: str, text_length: int) -> int:
    """Return the integer relevance of a record for the whole query.

    occurrences x 100, +50 when the text starts with the query, +25 per
    whole-word occurrence, divided by sqrt(text_length / 100), rounded half up.
    """
    if not folded_query or text_length <= 0:
        return 0

    occurrences = folded_text.count(folded_query)
    if occurrences == 0:
        return 0

    score = float(occurrences * OCCURRENCE_WEIGHT)
    if folded_text.startswith(folded_query):
        score += PREFIX_BONUS
    score += WHOLE_WORD_BONUS * count_whole_word(folded_text, folded_query)
    score /= math.sqrt(text_length / LENGTH_UNIT)
    return math.floor(score + 0.5)
