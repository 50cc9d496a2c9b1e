"""Search keyword derivation for meals."""

import re
from collections.abc import Iterable

from family_meal.domain.meals import MAX_KEYWORDS, Meal

MIN_TOKEN_LENGTH = 2
MAX_QUERY_TOKENS = 10

_SPLIT_PATTERN = re.compile(r"[\s,./!?()\[\]{}\"'`~:;|\\-]+")


def derive_keywords(
    description: str, meal_type: str, participants: Iterable[str]
) -> list[str]:
    """Return the de-duplicated search tokens for a meal's content fields."""
    raw = f"{description} {meal_type} {' '.join(participants)}".lower()
    keywords: list[str] = []
    seen: set[str] = set()
    for chunk in _SPLIT_PATTERN.split(raw):
        token = chunk.strip()
        if len(token) < MIN_TOKEN_LENGTH or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
        if len(keywords) >= MAX_KEYWORDS:
            break
    return keywords


def normalize_query(keyword: str) -> str:
    return keyword.strip().lower()


def tokenize_query(keyword: str) -> list[str]:
    """Split a search query into at most ten unique lowercase tokens."""
    tokens: list[str] = []
    for token in normalize_query(keyword).split():
        if token not in tokens:
            tokens.append(token)
    return tokens[:MAX_QUERY_TOKENS]


def matches_keyword(meal: Meal, keyword: str) -> bool:
    """Substring match over description, type, participants and keywords."""
    needle = normalize_query(keyword)
    if not needle:
        return False
    return (
        needle in meal.description.lower()
        or needle in meal.type.lower()
        or any(needle in role.lower() for role in meal.user_ids)
        or any(needle in token for token in meal.keywords)
    )
