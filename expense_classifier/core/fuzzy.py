"""
Approximate string matching for OCR-garbled text
"""
from Levenshtein import distance


def similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity in [0, 1].

    Two empty strings are identical (1.0); exactly one empty string
    shares nothing (0.0). Symmetric in its arguments.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - distance(a, b) / max(len(a), len(b))


def best_window_similarity(haystack: str, needle: str) -> float:
    """Best similarity of ``needle`` against any window of len(needle) ± 1"""
    if not needle:
        return 1.0
    if not haystack:
        return 0.0
    if needle in haystack:
        return 1.0

    best = 0.0
    n = len(needle)
    for size in (n - 1, n, n + 1):
        if size <= 0:
            continue
        if size >= len(haystack):
            best = max(best, similarity(haystack, needle))
            continue
        for start in range(len(haystack) - size + 1):
            score = similarity(haystack[start:start + size], needle)
            if score > best:
                best = score
                if best >= 1.0:
                    return best
    return best


def fuzzy_contains(haystack: str, needle: str, threshold: float = 0.8) -> bool:
    """True when ``needle`` appears in ``haystack`` exactly or within ``threshold`` similarity"""
    return best_window_similarity(haystack, needle) >= threshold
