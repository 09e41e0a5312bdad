"""Arabic diacritic mark detection."""

import re


# Harakat, tanwin, shadda, sukun and Quranic annotation marks
_DIACRITIC_PATTERN = re.compile(r"[\u064B-\u065F\u0670\u06D6-\u06ED]")


def has_diacritics(text: str) -> bool:
    """Return True when ``text`` contains at least one Arabic diacritic mark."""
    return _DIACRITIC_PATTERN.search(text) is not None
