"""Unit number normalization.

Legacy unit labels arrive as typed by people: "12A", "12 a", " 12a ". The
normalized form is what uniqueness and lookups compare on; the raw form is
kept separately for display.
"""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_unit_number(raw: str) -> str:
    """Trim, lowercase and strip all internal whitespace.

    Idempotent: normalize_unit_number(normalize_unit_number(x)) == normalize_unit_number(x).
    """
    return _WHITESPACE.sub("", raw.strip().lower())
