# grading_core/heuristics.py
from __future__ import annotations


def normalize_text(text: object) -> str:
    return str(text if text is not None else "").strip().lower()


def lexical_similarity(candidate: str, reference: str) -> float:
    """Deterministic word-overlap similarity in [0, 1].

    Exact match scores 1.0, containment scores the length ratio, anything
    else is the Jaccard index over whitespace-separated word sets.
    """
    a = normalize_text(candidate)
    b = normalize_text(reference)
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    if a in b or b in a:
        shorter, longer = (a, b) if len(a) < len(b) else (b, a)
        return len(shorter) / len(longer)

    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)
