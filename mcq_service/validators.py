"""Input validators and sanitizers for request fields."""

import math
import re

MAX_COUNT_PER_TIER = 1000

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME_TAG = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize_text(text: object) -> str:
    """Strip script/iframe tags and inline handlers; non-strings become ''."""
    if not isinstance(text, str):
        return ""
    text = _SCRIPT_TAG.sub("", text)
    text = _IFRAME_TAG.sub("", text)
    text = _JS_SCHEME.sub("", text)
    text = _INLINE_HANDLER.sub("", text)
    return text.strip()


def coerce_bool(value: object) -> bool:
    """Interpret form and JSON booleans ("true"/"false", 1/0, True/False)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def coerce_count(value: object) -> int:
    """Parse a per-tier question count.

    Raises:
        ValueError: If the value is not a number between 0 and 1000
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("MCQ Counts: MCQ count must be between 0 and 1000")
    text = str(value).strip()
    try:
        count = int(text)
    except ValueError:
        # Fractional counts ("2.5", 2.0) truncate toward zero.
        try:
            number = float(text)
        except ValueError:
            raise ValueError("MCQ Counts: MCQ count must be between 0 and 1000") from None
        if not math.isfinite(number):
            raise ValueError("MCQ Counts: MCQ count must be between 0 and 1000")
        count = int(number)
    if count < 0 or count > MAX_COUNT_PER_TIER:
        raise ValueError("MCQ Counts: MCQ count must be between 0 and 1000")
    return count
