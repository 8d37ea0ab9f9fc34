# src/core/similarity.py - v1
"""String and set similarity primitives.

``trigram_similarity`` follows pg_trgm semantics: words are lowercased
alphanumeric runs padded with two leading and one trailing space, and
similarity is the Jaccard ratio of the two trigram sets.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlparse

_WORD_RE = re.compile(r"[0-9a-z]+")


def trigrams(text: str) -> set[str]:
    """Return the pg_trgm-style trigram set of ``text``."""
    result: set[str] = set()
    for word in _WORD_RE.findall(text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            result.add(padded[i : i + 3])
    return result


def trigram_similarity(a: str, b: str) -> float:
    """Trigram similarity in [0, 1]; 0.0 when either side has no words."""
    ta, tb = trigrams(a), trigrams(b)
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard ratio of two collections treated as sets."""
    sa, sb = set(a), set(b)
    if not sa and not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def path_segments(url: str) -> list[str]:
    """Non-empty path segments of a URL."""
    return [s for s in urlparse(url).path.split("/") if s]


def path_segment_overlap(url_a: str, url_b: str, min_segments: int = 2) -> float:
    """Positional path-segment match ratio for two URLs on the same host.

    Returns 0.0 for different hosts or when either path is shorter than
    ``min_segments``.
    """
    pa, pb = urlparse(url_a), urlparse(url_b)
    if not pa.netloc or pa.netloc.lower() != pb.netloc.lower():
        return 0.0
    sa, sb = path_segments(url_a), path_segments(url_b)
    if len(sa) < min_segments or len(sb) < min_segments:
        return 0.0
    matches = sum(1 for x, y in zip(sa, sb) if x == y)
    return matches / max(len(sa), len(sb))
