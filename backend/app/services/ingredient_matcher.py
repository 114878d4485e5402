# backend/app/services/ingredient_matcher.py

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from app.core.config import settings
from app.core.exceptions import DataAccessError, InputValidationError, NotFoundError
from app.core.schemas import (
    IngredientAnalysis,
    IngredientMatch,
    IngredientMatchSummary,
    MatchOptions,
    PantryIngredient,
    RecipeAnalysis,
    RecipeMatch,
    RecipeRecord,
)
from app.services.dynamodb_service import RecipeRepository
from app.services.ingredient_normalizer import generate_variations, normalize_ingredient
from app.services.similarity_scorer import ENHANCED, MatchStrategy, contains_match

logger = logging.getLogger(__name__)


def _pantry_names(pantry: Sequence[Union[str, PantryIngredient]]) -> List[str]:
    return [item.name if isinstance(item, PantryIngredient) else item for item in pantry]


class IngredientMatcher:
    """Ranks recipes from the catalog against a user's pantry.

    The repository is injected so the matcher never reaches for a global
    storage client. Scoring of pantry ingredients against recipe ingredients
    goes through ``strategy``, which defaults to the enhanced ladder.
    """

    def __init__(
        self,
        repository: RecipeRepository,
        strategy: MatchStrategy = ENHANCED,
        min_ingredient_score: Optional[int] = None,
        enrichment_concurrency: Optional[int] = None,
    ):
        self.repository = repository
        self.strategy = strategy
        self.min_ingredient_score = (
            settings.MIN_INGREDIENT_SCORE if min_ingredient_score is None else min_ingredient_score
        )
        self.enrichment_concurrency = max(1, enrichment_concurrency or settings.ENRICHMENT_CONCURRENCY)

    async def find_matching_recipes(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        options: Optional[MatchOptions] = None,
    ) -> List[RecipeMatch]:
        """Find recipes that match the pantry using fuzzy ingredient matching.

        The match percentage is the share of pantry ingredients found in the
        recipe, so a recipe using two items of a twenty item pantry can still
        reach 100%. Storage failures propagate to the caller.
        """
        options = options or MatchOptions()
        ranked = await self.rank_recipes(user_ingredients, options)
        return ranked[:options.max_results]

    async def rank_recipes(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        options: Optional[MatchOptions] = None,
    ) -> List[RecipeMatch]:
        """Every recipe at or above the threshold, best first, not truncated."""
        pantry = _pantry_names(user_ingredients)
        if not pantry:
            raise InputValidationError("User ingredients are required")
        options = options or MatchOptions()

        recipes = await self.repository.fetch_all_recipes()
        logger.info("Matching %d pantry ingredients against %d recipes", len(pantry), len(recipes))

        candidates = [recipe for recipe in recipes if self._passes_filters(recipe, options)]
        ingredient_lists = await self._fetch_ingredient_lists(candidates)

        recipe_matches: List[RecipeMatch] = []
        for recipe, recipe_ingredients in zip(candidates, ingredient_lists):
            match = self.calculate_recipe_match(recipe, pantry, recipe_ingredients)
            if match.match_percentage >= options.min_match_percentage:
                recipe_matches.append(match)

        # sort() is stable, equal percentages keep catalog order
        recipe_matches.sort(key=lambda m: m.match_percentage, reverse=True)
        logger.info("Found %d matching recipes", len(recipe_matches))
        return recipe_matches

    async def _fetch_ingredient_lists(self, recipes: List[RecipeRecord]) -> List[List[str]]:
        semaphore = asyncio.Semaphore(self.enrichment_concurrency)

        async def fetch(recipe: RecipeRecord) -> List[str]:
            async with semaphore:
                return await self.repository.fetch_recipe_ingredients(recipe.recipe_id)

        return list(await asyncio.gather(*(fetch(recipe) for recipe in recipes)))

    def _passes_filters(self, recipe: RecipeRecord, options: MatchOptions) -> bool:
        if options.dietary_restrictions and recipe.dietary_tags:
            if not any(tag in options.dietary_restrictions for tag in recipe.dietary_tags):
                return False
        if options.max_cooking_time and recipe.cooking_time > options.max_cooking_time:
            return False
        if options.difficulty_level and recipe.difficulty.lower() != options.difficulty_level.lower():
            return False
        return True

    def calculate_recipe_match(
        self,
        recipe: RecipeRecord,
        pantry: List[str],
        recipe_ingredients: List[str],
    ) -> RecipeMatch:
        """Match every pantry ingredient against one recipe's ingredients."""
        matched_ingredients: List[str] = []
        missing_ingredients: List[str] = []

        for user_ingredient in pantry:
            best = self.find_best_match_for_ingredient(user_ingredient, recipe_ingredients)
            if best:
                matched_ingredients.append(best.recipe_ingredient)
            else:
                missing_ingredients.append(user_ingredient)

        match_percentage = round(len(matched_ingredients) / len(pantry) * 100) if pantry else 0

        return RecipeMatch(
            recipe_id=recipe.recipe_id,
            title=recipe.title,
            match_percentage=match_percentage,
            matched_ingredients=matched_ingredients,
            missing_ingredients=missing_ingredients,
            total_ingredients=len(recipe_ingredients),
            author=recipe.author,
            cooking_time=recipe.cooking_time,
            difficulty=recipe.difficulty,
            servings=recipe.servings,
            image_url=recipe.image_url,
        )

    def find_best_match_for_ingredient(
        self,
        user_ingredient: str,
        recipe_ingredients: Sequence[str],
    ) -> Optional[IngredientMatch]:
        """Best recipe ingredient for one pantry ingredient, if it scores high enough."""
        best = self.strategy.find_best_match(
            user_ingredient, recipe_ingredients, min_score=self.min_ingredient_score
        )
        if best is None:
            return None
        return IngredientMatch(
            user_ingredient=user_ingredient,
            recipe_ingredient=best.candidate,
            match_score=best.score,
            is_exact_match=best.is_exact_match,
        )

    async def enrich_matches(self, matches: List[RecipeMatch]) -> List[RecipeMatch]:
        """Attach full recipe data to each match.

        Fetches run concurrently, bounded by ``enrichment_concurrency``. A
        recipe whose data cannot be fetched is returned as it was.
        """
        semaphore = asyncio.Semaphore(self.enrichment_concurrency)

        async def enrich(match: RecipeMatch) -> RecipeMatch:
            async with semaphore:
                try:
                    recipe = await self.repository.fetch_full_recipe(match.recipe_id)
                except (DataAccessError, NotFoundError):
                    logger.warning("Error fetching full recipe data for %s", match.recipe_id, exc_info=True)
                    return match
            return match.model_copy(update={
                "description": recipe.description,
                "ingredients": recipe.ingredients,
                "instructions": recipe.instructions,
                "dietary_tags": recipe.dietary_tags,
            })

        return list(await asyncio.gather(*(enrich(match) for match in matches)))

    async def search(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        options: Optional[MatchOptions] = None,
        enrich: bool = True,
    ) -> List[RecipeMatch]:
        """Find matching recipes and, optionally, attach their full data."""
        matches = await self.find_matching_recipes(user_ingredients, options)
        if enrich and matches:
            matches = await self.enrich_matches(matches)
        return matches

    def calculate_ingredient_match(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        recipe_ingredients: Sequence[str],
    ) -> IngredientMatchSummary:
        """Share of a recipe's ingredients covered by the pantry.

        Unlike ``find_matching_recipes`` the percentage is relative to the
        recipe's ingredient count, and ingredients only match by containment of
        their normalized names. Rounded to a whole number.
        """
        pantry = _pantry_names(user_ingredients)
        if not pantry or not recipe_ingredients:
            raise InputValidationError("User ingredients and recipe ingredients are required")

        available, missing = self._split_available(pantry, recipe_ingredients)
        return IngredientMatchSummary(
            match_percentage=round(len(available) / len(recipe_ingredients) * 100),
            available_ingredients=available,
            missing_ingredients=missing,
        )

    def calculate_coverage(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        recipe_ingredients: Sequence[str],
    ) -> IngredientMatchSummary:
        """Recipe-relative coverage rounded to two decimals.

        Same rules as ``calculate_ingredient_match``; an empty recipe yields 0.
        """
        pantry = _pantry_names(user_ingredients)
        if not recipe_ingredients:
            return IngredientMatchSummary(match_percentage=0)

        available, missing = self._split_available(pantry, recipe_ingredients)
        return IngredientMatchSummary(
            match_percentage=round(len(available) / len(recipe_ingredients) * 100, 2),
            available_ingredients=available,
            missing_ingredients=missing,
        )

    def _split_available(self, pantry: List[str], recipe_ingredients: Sequence[str]):
        available: List[str] = []
        missing: List[str] = []
        for recipe_ingredient in recipe_ingredients:
            name = recipe_ingredient.lower()
            if any(contains_match(user_ingredient, name) for user_ingredient in pantry):
                available.append(name)
            else:
                missing.append(name)
        return available, missing

    async def find_recipes_by_ingredient(self, ingredient: str) -> List[str]:
        """Find ids of recipes that use an ingredient through the ingredient index.

        The normalized key is tried first. Without hits, the variations are
        tried in turn until one of them finds recipes.
        """
        normalized = normalize_ingredient(ingredient)
        recipe_ids = await self._lookup_ingredient_key(normalized)

        if not recipe_ids:
            for variation in generate_variations(ingredient):
                if variation == normalized:
                    continue
                for recipe_id in await self._lookup_ingredient_key(variation):
                    if recipe_id not in recipe_ids:
                        recipe_ids.append(recipe_id)
                if recipe_ids:
                    break

        return recipe_ids

    async def _lookup_ingredient_key(self, ingredient_key: str) -> List[str]:
        try:
            return list(await self.repository.fetch_recipes_by_ingredient_key(ingredient_key))
        except DataAccessError:
            logger.warning("Ingredient index lookup failed for %s", ingredient_key, exc_info=True)
            return []

    async def analyze_ingredient_matching(
        self,
        user_ingredients: Sequence[Union[str, PantryIngredient]],
        recipe_id: str,
    ) -> RecipeAnalysis:
        """Score every pantry ingredient against every ingredient of one recipe.

        Debugging aid: all qualifying matches are listed, highest score first,
        next to the best one.
        """
        pantry = _pantry_names(user_ingredients)
        if not pantry:
            raise InputValidationError("User ingredients are required")

        recipe = await self.repository.fetch_recipe_by_id(recipe_id)
        if recipe is None:
            raise NotFoundError(recipe_id)
        recipe_ingredients = await self.repository.fetch_recipe_ingredients(recipe_id)

        analysis = []
        for user_ingredient in pantry:
            all_matches = [
                match for match in (
                    self.find_best_match_for_ingredient(user_ingredient, [recipe_ingredient])
                    for recipe_ingredient in recipe_ingredients
                )
                if match is not None
            ]
            best_match = None
            for match in all_matches:
                if best_match is None or match.match_score > best_match.match_score:
                    best_match = match
            all_matches.sort(key=lambda m: m.match_score, reverse=True)
            analysis.append(IngredientAnalysis(
                user_ingredient=user_ingredient,
                best_match=best_match,
                all_matches=all_matches,
            ))

        return RecipeAnalysis(recipe_id=recipe_id, recipe_title=recipe.title, analysis=analysis)
