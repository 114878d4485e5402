# backend/app/api/matching.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.exceptions import DataAccessError, InputValidationError, NotFoundError
from app.core.schemas import IngredientMatchSummary, MatchOptions, RecipeAnalysis, RecipeMatch
from app.services.dynamodb_service import DynamoDBRecipeRepository
from app.services.ingredient_matcher import IngredientMatcher

logger = logging.getLogger(__name__)

router = APIRouter()

class FindRecipesRequest(BaseModel):
    user_ingredients: List[str]
    min_match_percentage: float = Field(default=settings.MIN_MATCH_PERCENTAGE, ge=0, le=100)
    limit: int = Field(default=settings.MAX_RESULTS, ge=0)
    dietary_restrictions: List[str] = []
    max_cooking_time: Optional[int] = None
    difficulty_level: Optional[str] = None

class SearchCriteria(BaseModel):
    dietary_restrictions: List[str]
    max_cooking_time: Optional[int] = None
    difficulty_level: Optional[str] = None
    min_match_percentage: float

class FindRecipesResponse(BaseModel):
    matches: List[RecipeMatch]
    total_matches: int
    user_ingredients: List[str]
    search_criteria: SearchCriteria

class CalculateMatchRequest(BaseModel):
    user_ingredients: List[str]
    recipe_ingredients: List[str]

class IngredientAnalysisRequest(BaseModel):
    user_ingredients: List[str]
    recipe_id: str

class RecipesByIngredientResponse(BaseModel):
    ingredient: str
    recipe_ids: List[str]

def get_ingredient_matcher() -> IngredientMatcher:
    """Dependency to get IngredientMatcher instance."""
    return IngredientMatcher(DynamoDBRecipeRepository())

@router.post("/find-recipes", response_model=FindRecipesResponse)
async def find_recipes(
    request: FindRecipesRequest,
    matcher: IngredientMatcher = Depends(get_ingredient_matcher)
):
    """Rank catalog recipes by how many of the user's ingredients they use."""
    options = MatchOptions(
        min_match_percentage=request.min_match_percentage,
        max_results=request.limit,
        include_partial_matches=True,
        dietary_restrictions=request.dietary_restrictions,
        max_cooking_time=request.max_cooking_time,
        difficulty_level=request.difficulty_level,
    )
    try:
        ranked = await matcher.rank_recipes(request.user_ingredients, options)
        matches = await matcher.enrich_matches(ranked[:options.max_results])
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataAccessError:
        # A failed search must not look like "no matches"
        logger.exception("Find matching recipes failed")
        raise HTTPException(status_code=503, detail="Recipe search failed")

    return FindRecipesResponse(
        matches=matches,
        total_matches=len(ranked),
        user_ingredients=request.user_ingredients,
        search_criteria=SearchCriteria(
            dietary_restrictions=request.dietary_restrictions,
            max_cooking_time=request.max_cooking_time,
            difficulty_level=request.difficulty_level,
            min_match_percentage=request.min_match_percentage,
        ),
    )

@router.post("/calculate-match", response_model=IngredientMatchSummary)
async def calculate_match(
    request: CalculateMatchRequest,
    matcher: IngredientMatcher = Depends(get_ingredient_matcher)
):
    """Share of one recipe's ingredients the user already has."""
    try:
        return matcher.calculate_ingredient_match(request.user_ingredients, request.recipe_ingredients)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/ingredient-analysis", response_model=RecipeAnalysis)
async def ingredient_analysis(
    request: IngredientAnalysisRequest,
    matcher: IngredientMatcher = Depends(get_ingredient_matcher)
):
    """Every candidate match of each pantry ingredient against one recipe."""
    try:
        return await matcher.analyze_ingredient_matching(request.user_ingredients, request.recipe_id)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DataAccessError:
        logger.exception("Ingredient analysis failed for %s", request.recipe_id)
        raise HTTPException(status_code=503, detail="Failed to analyze ingredient matching")

@router.get("/recipes-by-ingredient", response_model=RecipesByIngredientResponse)
async def recipes_by_ingredient(
    ingredient: str = Query(..., min_length=1),
    matcher: IngredientMatcher = Depends(get_ingredient_matcher)
):
    """Ids of recipes indexed under an ingredient or one of its variations."""
    recipe_ids = await matcher.find_recipes_by_ingredient(ingredient)
    return RecipesByIngredientResponse(ingredient=ingredient, recipe_ids=recipe_ids)
