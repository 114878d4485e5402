"""Exceptions raised by the recipe matcher."""


class RecipeMatcherError(Exception):
    """Base exception for the recipe matcher."""

    pass


class InputValidationError(RecipeMatcherError):
    """Raised when a required ingredient list is missing or empty."""

    pass


class DataAccessError(RecipeMatcherError):
    """Raised when the recipe store cannot be read or written."""

    pass


class NotFoundError(RecipeMatcherError):
    """Raised when a requested recipe does not exist."""

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe {recipe_id} not found")
        self.recipe_id = recipe_id
