from typing import List, Optional, Union
from pydantic import BaseModel, Field

class RecipeIngredient(BaseModel):
    """Schema for an ingredient entry belonging to a recipe."""
    name: str = Field(..., description="Ingredient name as authored in the recipe")
    quantity: Optional[str] = Field(None, description="Quantity of the ingredient")
    unit: Optional[str] = Field(None, description="Unit of measurement")
    normalized_name: Optional[str] = Field(None, description="Normalized ingredient key")

class PantryIngredient(BaseModel):
    """Schema for an ingredient the user has available."""
    name: str = Field(..., description="Ingredient name as entered by the user")
    quantity: Optional[float] = Field(None, description="Quantity on hand")
    unit: Optional[str] = Field(None, description="Unit of measurement")

class RecipeRecord(BaseModel):
    """Read-only view of a stored recipe."""
    recipe_id: str = Field(..., description="Unique identifier for the recipe")
    title: str = Field(..., description="Recipe title")
    description: str = Field("", description="Recipe description")
    author: str = Field("Unknown", description="Author user id")
    cooking_time: int = Field(0, description="Cooking time in minutes")
    difficulty: str = Field("unknown", description="Difficulty level")
    servings: int = Field(0, description="Number of servings")
    image_url: Optional[str] = Field(None, description="Recipe image URL")
    dietary_tags: List[str] = Field(default_factory=list, description="Dietary tags")
    instructions: List[str] = Field(default_factory=list, description="Ordered instruction steps")
    ingredients: List[RecipeIngredient] = Field(default_factory=list, description="Ordered ingredient entries")

class NormalizedIngredient(BaseModel):
    """An ingredient name with its canonical key and lookup variations."""
    original: str
    normalized: str
    variations: List[str] = Field(default_factory=list)

class IngredientMatch(BaseModel):
    """Best pairing of one pantry ingredient with one recipe ingredient."""
    user_ingredient: str
    recipe_ingredient: str
    match_score: int = Field(..., ge=0)
    is_exact_match: bool = False

class RecipeMatch(BaseModel):
    """Ranked match of a recipe against a pantry."""
    recipe_id: str
    title: str
    match_percentage: int = Field(..., ge=0, le=100)
    matched_ingredients: List[str] = Field(default_factory=list)
    missing_ingredients: List[str] = Field(default_factory=list)
    total_ingredients: int = 0
    author: str = "Unknown"
    cooking_time: int = 0
    difficulty: str = "unknown"
    servings: int = 0
    image_url: Optional[str] = None
    # Filled in by enrichment
    description: Optional[str] = None
    ingredients: Optional[List[RecipeIngredient]] = None
    instructions: Optional[List[str]] = None
    dietary_tags: Optional[List[str]] = None

class MatchOptions(BaseModel):
    """Options for a catalog-wide recipe search."""
    min_match_percentage: float = Field(default=50, ge=0, le=100, description="Minimum match percentage to include")
    max_results: int = Field(default=20, ge=0, description="Maximum number of matches to return")
    include_partial_matches: bool = Field(default=False, description="Accepted for compatibility; partial matches above the floor are always included")
    dietary_restrictions: List[str] = Field(default_factory=list, description="Keep recipes sharing at least one of these tags")
    max_cooking_time: Optional[int] = Field(None, description="Maximum cooking time in minutes")
    difficulty_level: Optional[str] = Field(None, description="Required difficulty level")

class IngredientMatchSummary(BaseModel):
    """Recipe-relative availability of ingredients for a single recipe."""
    match_percentage: Union[int, float]
    available_ingredients: List[str] = Field(default_factory=list)
    missing_ingredients: List[str] = Field(default_factory=list)

class IngredientAnalysis(BaseModel):
    """Every candidate match of one pantry ingredient against a recipe."""
    user_ingredient: str
    best_match: Optional[IngredientMatch] = None
    all_matches: List[IngredientMatch] = Field(default_factory=list)

class RecipeAnalysis(BaseModel):
    """Per-ingredient matching diagnostics for a single recipe."""
    recipe_id: str
    recipe_title: str
    analysis: List[IngredientAnalysis] = Field(default_factory=list)
