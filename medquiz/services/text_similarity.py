"""
Text Similarity

Lexical helpers used by the validators: normalization, Levenshtein edit
distance and asymmetric token overlap. No semantics, only characters and
words.
"""

import re
import unicodedata
from functools import lru_cache
from typing import Pattern, Set

# Unicode-aware: Greek letters (alpha, beta, kappa, mu) are kept
_NON_ALNUM = re.compile(r"[\W_]+")

# Ligatures that NFKD does not decompose
_LIGATURES = {"œ": "oe", "æ": "ae", "ß": "ss"}

MIN_TOKEN_LENGTH = 3


def strip_diacritics(text: str) -> str:
    for ligature, replacement in _LIGATURES.items():
        text = text.replace(ligature, replacement)
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str) -> str:
    """Lower-case, strip diacritics, collapse non-alphanumeric runs to one space."""
    if not text:
        return ""
    folded = strip_diacritics(str(text).lower())
    return _NON_ALNUM.sub(" ", folded).strip()


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with a single rolling row."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def tokens(text: str) -> Set[str]:
    return {word for word in normalize(text).split() if len(word) >= MIN_TOKEN_LENGTH}


def token_overlap(a: str, b: str) -> float:
    """
    Share of ``a``'s tokens that also appear in ``b``.

    Asymmetric: pass the correct answer first to measure how much of its
    vocabulary leaks into a distractor. Returns 0.0 when ``a`` has no tokens.
    """
    tokens_a = tokens(a)
    if not tokens_a:
        return 0.0
    return len(tokens_a & tokens(b)) / len(tokens_a)


def similarity_ratio(a: str, b: str) -> float:
    """Edit distance between normalized texts divided by the longer length (0 = identical)."""
    norm_a, norm_b = normalize(a), normalize(b)
    longest = max(len(norm_a), len(norm_b))
    if longest == 0:
        return 0.0
    return edit_distance(norm_a, norm_b) / longest


def are_near_duplicates(a: str, b: str, threshold: float = 0.20) -> bool:
    return similarity_ratio(a, b) < threshold


@lru_cache(maxsize=512)
def _term_pattern(term: str) -> Pattern:
    normalized = normalize(term)
    # Short terms ("os", "atp") must match a whole word, longer ones a word prefix
    # so plurals and inflections still count.
    suffix = r"\b" if len(normalized) < 4 else ""
    return re.compile(r"\b" + re.escape(normalized) + suffix)


def contains_term(normalized_text: str, term: str) -> bool:
    """Accent-insensitive vocabulary lookup; ``normalized_text`` must come from normalize()."""
    return bool(_term_pattern(term).search(normalized_text))
