"""Keyword extraction for trend names and message bodies.

Only capitalized tokens survive, which keeps proper nouns and acronyms
and drops the bulk of the vocabulary.
"""
import unicodedata
from typing import AbstractSet, List


def clean_token(token: str) -> str:
    """Keep only Unicode letters and numbers."""
    return "".join(ch for ch in token if unicodedata.category(ch)[0] in ("L", "N"))


def parse_keywords(text: str, stopwords: AbstractSet[str]) -> List[str]:
    """
    Extract keywords from free text.

    Args:
        text: Trend name or message body
        stopwords: Lower-cased stopword set

    Returns:
        Keywords in order of first appearance, without duplicates
    """
    keywords = {}
    for token in text.split():
        if token.startswith("@"):
            continue

        cleaned = clean_token(token)
        if token.strip().lower() in stopwords or cleaned.strip().lower() in stopwords:
            continue

        if cleaned and cleaned[0].isupper():
            keywords.setdefault(cleaned, None)

    return list(keywords)
