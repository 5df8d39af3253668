# FILE: services/canonicalizer.py
"""
Category canonicalization against the fixed taxonomy.

- normalize(): total and deterministic, always returns a taxonomy name
- find_category(): strict lookup, returns None for anything that is not
  clearly a taxonomy category (used where a wrong guess would be persisted)
"""

import re
from difflib import get_close_matches
from typing import Dict, List, Optional

from core.categories import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    MERCHANT_NAMES,
    get_category,
)

# Score weights
EXACT_KEYWORD = 3
WHOLE_WORD = 2
SUBSTRING = 1
EXAMPLE = 1

_WORD_PATTERNS: Dict[str, re.Pattern] = {}


def _word_re(term: str) -> re.Pattern:
    pattern = _WORD_PATTERNS.get(term)
    if pattern is None:
        pattern = re.compile(rf"(?<![\w-]){re.escape(term)}(?![\w-])", re.IGNORECASE)
        _WORD_PATTERNS[term] = pattern
    return pattern


def _clean(text: Optional[str]) -> str:
    if not text:
        return ""
    text = text.replace("*", " ").replace("_", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip().strip(".,;:!?\"'()[]").strip().lower()


def merchant_category(text: str) -> Optional[str]:
    """Brand names outrank generic keyword scoring."""
    lowered = _clean(text)
    if not lowered:
        return None
    for merchant in MERCHANT_NAMES:
        if _word_re(merchant).search(lowered):
            return "Dining Out"
    return None


def score_categories(text: str) -> Dict[str, int]:
    """
    Keyword / example scoring for every category.
    Exact keyword = 3, whole word = 2, substring = 1, example phrase = 1.
    """
    lowered = _clean(text)
    scores: Dict[str, int] = {}
    if not lowered:
        return scores

    for category in CATEGORIES:
        score = 0
        for keyword in category.keywords:
            if lowered == keyword:
                score += EXACT_KEYWORD
            elif keyword in lowered:
                score += WHOLE_WORD if _word_re(keyword).search(lowered) else SUBSTRING
        for example in category.examples:
            if example in lowered:
                score += EXAMPLE
        if score > 0:
            scores[category.name] = score
    return scores


def _close_match(lowered: str) -> Optional[str]:
    # Single-token misspellings only ("grocerys", "restaraunt")
    if " " in lowered or len(lowered) < 4:
        return None
    vocabulary: Dict[str, str] = {}
    for category in CATEGORIES:
        vocabulary.setdefault(category.name.lower(), category.name)
        for keyword in category.keywords:
            vocabulary.setdefault(keyword, category.name)
    matches = get_close_matches(lowered, list(vocabulary.keys()), n=1, cutoff=0.85)
    if matches:
        return vocabulary[matches[0]]
    return None


def normalize(free_text: Optional[str]) -> str:
    """
    Canonicalize a free-text category phrase.

    Order:
    1. exact (case-insensitive) canonical name
    2. merchant override -> Dining Out
    3. keyword / example scoring, highest score wins, ties by table order
    4. close match for single misspelled words
    5. Other
    """
    lowered = _clean(free_text)
    if not lowered:
        return DEFAULT_CATEGORY

    exact = get_category(lowered)
    if exact:
        return exact.name

    merchant = merchant_category(lowered)
    if merchant:
        return merchant

    scores = score_categories(lowered)
    if scores:
        best = max(scores.values())
        for category in CATEGORIES:
            if scores.get(category.name) == best:
                return category.name

    return _close_match(lowered) or DEFAULT_CATEGORY


def find_category(phrase: Optional[str]) -> Optional[str]:
    """
    Strict lookup: a canonical name, or a phrase that is exactly one
    category's keyword. Meta phrases like "any of your spending categories"
    return None instead of a guess.
    """
    lowered = _clean(phrase)
    if not lowered:
        return None

    exact = get_category(lowered)
    if exact:
        return exact.name

    owners: List[str] = [c.name for c in CATEGORIES if lowered in c.keywords]
    if len(owners) == 1:
        return owners[0]
    return None
