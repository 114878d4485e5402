# backend/app/services/similarity_scorer.py

"""Similarity scoring between ingredient names.

Two scoring ladders are kept side by side. The enhanced ladder ranks pantry
ingredients against recipe ingredients in catalog searches; the legacy ladder
backs the standalone best-match helper. Their constants differ and callers
depend on the exact numbers, so they are separate strategies.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from app.services.ingredient_normalizer import generate_variations, normalize_ingredient


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: str
    score: int
    is_exact_match: bool = False


def are_similar(ingredient1: str, ingredient2: str) -> bool:
    """Check whether two ingredient names likely refer to the same thing."""
    norm1 = normalize_ingredient(ingredient1)
    norm2 = normalize_ingredient(ingredient2)

    if norm1 == norm2:
        return True

    if norm1 in norm2 or norm2 in norm1:
        return True

    return bool(set(generate_variations(ingredient1)) & set(generate_variations(ingredient2)))


def contains_match(ingredient1: str, ingredient2: str) -> bool:
    """Containment-only check on normalized names, without variation lookups."""
    norm1 = normalize_ingredient(ingredient1)
    norm2 = normalize_ingredient(ingredient2)
    return norm1 in norm2 or norm2 in norm1


def shared_variations(ingredient1: str, ingredient2: str) -> int:
    variations2 = set(generate_variations(ingredient2))
    return sum(1 for variation in generate_variations(ingredient1) if variation in variations2)


class MatchStrategy(ABC):
    """Scores a target ingredient against candidate ingredient names."""

    name: str = "base"

    @abstractmethod
    def score(self, target: str, candidate: str) -> Optional[ScoredCandidate]:
        """Return the score for one candidate, or None when no rule applies."""

    def find_best_match(
        self,
        target: str,
        candidates: Iterable[str],
        min_score: int = 0,
    ) -> Optional[ScoredCandidate]:
        """Pick the highest scoring candidate; the first one wins ties."""
        best: Optional[ScoredCandidate] = None
        for candidate in candidates:
            scored = self.score(target, candidate)
            if scored is None:
                continue
            if scored.score > (best.score if best else 0):
                best = scored

        if best is None or best.score < min_score:
            return None
        return best


class EnhancedMatchStrategy(MatchStrategy):
    """Ladder used when ranking recipes for a pantry.

    exact 100, candidate contains target 90, target contains candidate 85,
    shared variations 70 + 5 per variation (uncapped), loosely similar 60.
    """

    name = "enhanced"

    def score(self, target: str, candidate: str) -> Optional[ScoredCandidate]:
        target_norm = normalize_ingredient(target)
        candidate_norm = normalize_ingredient(candidate)

        if target_norm == candidate_norm:
            return ScoredCandidate(candidate, 100, is_exact_match=True)
        if target_norm in candidate_norm:
            return ScoredCandidate(candidate, 90)
        if candidate_norm in target_norm:
            return ScoredCandidate(candidate, 85)

        common = shared_variations(target, candidate)
        if common > 0:
            return ScoredCandidate(candidate, 70 + common * 5)
        if are_similar(target, candidate):
            return ScoredCandidate(candidate, 60)
        return None


class LegacyMatchStrategy(MatchStrategy):
    """Stricter ladder used by the standalone best-match helper.

    exact 100, candidate contains target 80, target contains candidate 70,
    shared variations 60 + 10 per variation.
    """

    name = "legacy"

    def score(self, target: str, candidate: str) -> Optional[ScoredCandidate]:
        target_norm = normalize_ingredient(target)
        candidate_norm = normalize_ingredient(candidate)

        if target_norm == candidate_norm:
            return ScoredCandidate(candidate, 100, is_exact_match=True)
        if target_norm in candidate_norm:
            return ScoredCandidate(candidate, 80)
        if candidate_norm in target_norm:
            return ScoredCandidate(candidate, 70)

        common = shared_variations(target, candidate)
        if common > 0:
            return ScoredCandidate(candidate, 60 + common * 10)
        return None


ENHANCED = EnhancedMatchStrategy()
LEGACY = LegacyMatchStrategy()

STRATEGIES = {strategy.name: strategy for strategy in (ENHANCED, LEGACY)}


def get_strategy(name: str) -> MatchStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown match strategy: {name}") from None


def score_match(user_ingredient: str, candidate: str) -> Optional[ScoredCandidate]:
    """Score a pantry ingredient against one recipe ingredient (enhanced ladder)."""
    return ENHANCED.score(user_ingredient, candidate)


def find_best_match(
    target: str,
    candidates: Iterable[str],
    strategy: MatchStrategy = LEGACY,
) -> Optional[ScoredCandidate]:
    """Find the best matching candidate for a target ingredient."""
    return strategy.find_best_match(target, candidates)
