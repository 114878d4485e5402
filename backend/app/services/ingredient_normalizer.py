# backend/app/services/ingredient_normalizer.py

"""Ingredient name normalization for fuzzy matching.

Free-text ingredient names ("Fresh Diced Tomatoes", "chicken breasts") are
reduced to a canonical hyphenated key ("tomato", "chicken-breast"), and each
key can be widened into a set of textual variations used for lookups.
"""

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from app.core.config import settings
from app.core.schemas import NormalizedIngredient

DEFAULT_ALTERNATIVES_PATH = Path(__file__).resolve().parent.parent / "data" / "ingredient_alternatives.json"

QUALIFIER_WORDS = ("fresh", "dried", "frozen", "canned", "organic", "free-range")
PREPARATION_WORDS = ("chopped", "diced", "sliced", "minced", "grated", "shredded", "crushed", "ground", "whole", "pieces?")

_QUALIFIER_PATTERN = "|".join(QUALIFIER_WORDS)
_PREPARATION_PATTERN = "|".join(PREPARATION_WORDS)

# A leading qualifier may be followed by one preparation word ("fresh diced onions")
_LEADING_RE = re.compile(rf"^(?:{_QUALIFIER_PATTERN})\s+(?:(?:{_PREPARATION_PATTERN})\s+)?", re.IGNORECASE)
_TRAILING_RE = re.compile(rf"\s+(?:{_PREPARATION_PATTERN})$", re.IGNORECASE)
_PARENTHESES_RE = re.compile(r"\s*\([^)]*\)\s*$")
_SEPARATORS_RE = re.compile(r"[\s\-_]+")


@lru_cache(maxsize=None)
def load_alternatives(path: Optional[str] = None) -> Dict[str, List[str]]:
    """Load the alternatives table mapping base ingredients to specific variants."""
    source = Path(path or settings.INGREDIENT_ALTERNATIVES_PATH or DEFAULT_ALTERNATIVES_PATH)
    with source.open(encoding="utf-8") as f:
        data = json.load(f)
    return {key: list(values) for key, values in data.items()}


def reset_alternatives_cache() -> None:
    """Drop the loaded alternatives table and every variation derived from it."""
    load_alternatives.cache_clear()
    _variations.cache_clear()


def _depluralize(text: str) -> str:
    # Naive suffix rules, first match wins
    if text.endswith("ies"):
        return text[:-3] + "y"
    if text.endswith("es"):
        return text[:-2]
    if text.endswith("s"):
        return text[:-1]
    return text


def normalize_ingredient(ingredient: str) -> str:
    """Normalize an ingredient name into its canonical hyphenated key."""
    text = ingredient.lower().strip()
    text = _LEADING_RE.sub("", text, count=1)
    text = _TRAILING_RE.sub("", text, count=1)
    text = _PARENTHESES_RE.sub("", text, count=1)
    text = _depluralize(text)
    text = _SEPARATORS_RE.sub("-", text)
    return text.strip("-")


def get_ingredient_alternatives(normalized: str) -> List[str]:
    """Look up alternative names for a normalized key.

    An exact table key wins; otherwise the alternatives of every key that
    contains, or is contained in, the normalized key are combined.
    """
    alternatives = load_alternatives()
    if normalized in alternatives:
        return list(alternatives[normalized])

    partial_matches: List[str] = []
    for key, values in alternatives.items():
        if key in normalized or normalized in key:
            partial_matches.extend(values)
    return partial_matches


def generate_variations(ingredient: str) -> List[str]:
    """Generate the textual variations of an ingredient used for lookups.

    The normalized key is always the first element. Order is otherwise not
    significant and the list holds no duplicates.
    """
    return list(_variations(normalize_ingredient(ingredient)))


@lru_cache(maxsize=4096)
def _variations(normalized: str) -> tuple:
    variations = {normalized: None}

    variations.setdefault(normalized.replace("-", ""))
    variations.setdefault(normalized.replace("-", " "))

    if normalized.endswith("y"):
        variations.setdefault(normalized[:-1] + "ies")
    elif not normalized.endswith("s"):
        variations.setdefault(normalized + "s")

    for alternative in get_ingredient_alternatives(normalized):
        variations.setdefault(alternative)

    return tuple(variations)


def create_normalized_ingredient(ingredient: str) -> NormalizedIngredient:
    return NormalizedIngredient(
        original=ingredient,
        normalized=normalize_ingredient(ingredient),
        variations=generate_variations(ingredient),
    )
