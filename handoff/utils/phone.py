"""Phone number normalization for WhatsApp delivery."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s\-()]")


def normalize_ng_phone(phone: str) -> str | None:
    """Normalize a Nigerian mobile number to E.164 (``+234XXXXXXXXXX``).

    Accepts ``+2348012345678``, ``2348012345678`` and ``08012345678``, with
    optional spaces, dashes or parentheses.

    Returns:
        The normalized number, or None when the input is not recognised.

    Examples:
        >>> normalize_ng_phone("0801 234 5678")
        '+2348012345678'
        >>> normalize_ng_phone("12345") is None
        True
    """
    cleaned = _SEPARATORS.sub("", phone or "")

    if cleaned.startswith("+234") and len(cleaned) == 14 and cleaned[1:].isdigit():
        return cleaned
    if cleaned.startswith("0") and len(cleaned) == 11 and cleaned.isdigit():
        return "+234" + cleaned[1:]
    if cleaned.startswith("234") and len(cleaned) == 13 and cleaned.isdigit():
        return "+" + cleaned
    return None
