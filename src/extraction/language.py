# src/extraction/language.py - v1
"""Marker-word language detection for extracted pages.

Council sites are overwhelmingly English with some Welsh; scoring counts
whole-word markers per language over the first 3000 characters.
"""

from __future__ import annotations

import re

_MARKERS: dict[str, tuple[str, ...]] = {
    "en": ("the", "and", "for", "are", "that", "with", "this", "from", "was", "our"),
    "cy": ("y", "yr", "a'r", "ac", "mae", "yn", "ein", "gyda", "cyngor", "ar gyfer"),
    "fr": ("les", "des", "une", "dans", "pour", "avec", "est", "sont", "cette"),
    "de": ("der", "die", "und", "ist", "ein", "den", "das", "nicht", "sich"),
}
_MIN_MARKER_RATIO = 0.05


def detect_language(text: str) -> str:
    """ISO 639-1 code of the dominant language, or 'unknown'."""
    sample = text[:3000].lower()
    words = re.findall(r"[\w']+", sample)
    if not words:
        return "unknown"

    scores = {
        lang: sum(len(re.findall(rf"(?<![\w']){re.escape(m)}(?![\w'])", sample)) for m in markers)
        for lang, markers in _MARKERS.items()
    }
    best = max(scores, key=scores.get)  # type: ignore[arg-type]
    if scores[best] < len(words) * _MIN_MARKER_RATIO:
        return "unknown"
    return best
