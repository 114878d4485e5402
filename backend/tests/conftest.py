from typing import Dict, List, Optional

import pytest

from app.core.exceptions import DataAccessError, NotFoundError
from app.core.schemas import RecipeIngredient, RecipeRecord
from app.services.dynamodb_service import RecipeRepository
from app.services.ingredient_matcher import IngredientMatcher

TEST_RECIPES = [
    RecipeRecord(
        recipe_id="r1",
        title="Chicken Stir Fry",
        author="chef-1",
        cooking_time=20,
        difficulty="easy",
        servings=2,
        dietary_tags=["dairy-free"],
        instructions=["Slice the chicken", "Stir fry everything"],
        ingredients=[
            RecipeIngredient(name="chicken breast", quantity="2", unit="piece"),
            RecipeIngredient(name="bell peppers", quantity="2", unit="piece"),
            RecipeIngredient(name="broccoli", quantity="1", unit="head"),
            RecipeIngredient(name="garlic", quantity="3", unit="clove"),
            RecipeIngredient(name="soy sauce", quantity="2", unit="tbsp"),
        ],
    ),
    RecipeRecord(
        recipe_id="r2",
        title="Tomato Pasta",
        author="chef-2",
        cooking_time=25,
        difficulty="easy",
        servings=4,
        ingredients=[
            RecipeIngredient(name="pasta"),
            RecipeIngredient(name="tomato"),
            RecipeIngredient(name="cheese"),
            RecipeIngredient(name="garlic"),
        ],
    ),
    RecipeRecord(
        recipe_id="r3",
        title="Beef Stew",
        author="chef-1",
        cooking_time=120,
        difficulty="hard",
        servings=6,
        ingredients=[
            RecipeIngredient(name="beef"),
            RecipeIngredient(name="potato"),
            RecipeIngredient(name="carrot"),
            RecipeIngredient(name="onion"),
            RecipeIngredient(name="beef stock"),
        ],
    ),
    RecipeRecord(
        recipe_id="r4",
        title="Roast Chicken",
        author="chef-3",
        cooking_time=90,
        difficulty="medium",
        servings=4,
        ingredients=[
            RecipeIngredient(name="chicken thighs"),
            RecipeIngredient(name="chicken"),
            RecipeIngredient(name="lemon"),
        ],
    ),
]

TEST_INGREDIENT_INDEX = {
    "chicken-breast": ["r1"],
    "garlic": ["r1", "r2"],
}


class FakeRecipeRepository(RecipeRepository):
    """In-memory catalog with switchable failures."""

    def __init__(
        self,
        recipes: Optional[List[RecipeRecord]] = None,
        ingredient_index: Optional[Dict[str, List[str]]] = None,
    ):
        self.recipes = {recipe.recipe_id: recipe for recipe in (recipes if recipes is not None else TEST_RECIPES)}
        self.ingredient_index = ingredient_index if ingredient_index is not None else TEST_INGREDIENT_INDEX
        self.fail_catalog = False
        self.fail_ingredients_for = set()
        self.fail_full_recipe_for = set()
        self.fail_keys = set()
        self.looked_up_keys = []

    async def fetch_all_recipes(self):
        if self.fail_catalog:
            raise DataAccessError("scan failed")
        return [recipe.model_copy(update={"ingredients": [], "instructions": []}) for recipe in self.recipes.values()]

    async def fetch_recipe_ingredients(self, recipe_id):
        if recipe_id in self.fail_ingredients_for:
            raise DataAccessError("query failed")
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            return []
        return list(dict.fromkeys(ingredient.name for ingredient in recipe.ingredients))

    async def fetch_recipes_by_ingredient_key(self, ingredient_key):
        self.looked_up_keys.append(ingredient_key)
        if ingredient_key in self.fail_keys:
            raise DataAccessError("index query failed")
        return list(self.ingredient_index.get(ingredient_key, []))

    async def fetch_recipe_by_id(self, recipe_id):
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            return None
        return recipe.model_copy(update={"ingredients": [], "instructions": []})

    async def fetch_full_recipe(self, recipe_id):
        if recipe_id in self.fail_full_recipe_for:
            raise DataAccessError("query failed")
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            raise NotFoundError(recipe_id)
        return recipe


@pytest.fixture
def fake_repository():
    return FakeRecipeRepository()


@pytest.fixture
def matcher(fake_repository):
    return IngredientMatcher(fake_repository, min_ingredient_score=50, enrichment_concurrency=2)
