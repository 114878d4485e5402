from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api.matching import get_ingredient_matcher
from app.main import app
from app.services.ingredient_matcher import IngredientMatcher

BASE_URL = "/api/matching"


@pytest.fixture
def client(fake_repository):
    app.dependency_overrides[get_ingredient_matcher] = lambda: IngredientMatcher(fake_repository)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_find_recipes(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={
        "user_ingredients": ["chicken breast", "bell peppers", "broccoli", "garlic"],
    })

    assert response.status_code == 200
    data = response.json()
    assert data["total_matches"] == 1
    match = data["matches"][0]
    assert match["recipe_id"] == "r1"
    assert match["match_percentage"] == 100
    assert match["instructions"] == ["Slice the chicken", "Stir fry everything"]
    assert data["search_criteria"]["min_match_percentage"] == 50


def test_find_recipes_with_filters(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={
        "user_ingredients": ["garlic", "tomato"],
        "difficulty_level": "easy",
        "max_cooking_time": 20,
    })

    assert response.status_code == 200
    assert [m["recipe_id"] for m in response.json()["matches"]] == ["r1"]


def test_find_recipes_requires_ingredients(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={"user_ingredients": []})

    assert response.status_code == 400


def test_find_recipes_reports_storage_failure(client, fake_repository):
    fake_repository.fail_catalog = True

    response = client.post(f"{BASE_URL}/find-recipes", json={"user_ingredients": ["garlic"]})

    assert response.status_code == 503
    assert response.json()["detail"] == "Recipe search failed"


def test_find_recipes_rejects_invalid_threshold(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={
        "user_ingredients": ["garlic"],
        "min_match_percentage": 150,
    })

    assert response.status_code == 422


def test_calculate_match(client):
    response = client.post(f"{BASE_URL}/calculate-match", json={
        "user_ingredients": ["garlic", "tomatoes"],
        "recipe_ingredients": ["pasta", "tomato", "cheese", "garlic"],
    })

    assert response.status_code == 200
    assert response.json() == {
        "match_percentage": 50,
        "available_ingredients": ["tomato", "garlic"],
        "missing_ingredients": ["pasta", "cheese"],
    }


def test_calculate_match_without_overlap(client):
    response = client.post(f"{BASE_URL}/calculate-match", json={
        "user_ingredients": ["chicken"],
        "recipe_ingredients": ["pasta", "tomato"],
    })

    assert response.status_code == 200
    assert response.json()["match_percentage"] == 0


def test_calculate_match_requires_recipe_ingredients(client):
    response = client.post(f"{BASE_URL}/calculate-match", json={
        "user_ingredients": ["chicken"],
        "recipe_ingredients": [],
    })

    assert response.status_code == 400


def test_ingredient_analysis(client):
    response = client.post(f"{BASE_URL}/ingredient-analysis", json={
        "user_ingredients": ["chicken"],
        "recipe_id": "r4",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["recipe_title"] == "Roast Chicken"
    assert data["analysis"][0]["best_match"]["recipe_ingredient"] == "chicken"


def test_ingredient_analysis_unknown_recipe(client):
    response = client.post(f"{BASE_URL}/ingredient-analysis", json={
        "user_ingredients": ["chicken"],
        "recipe_id": "missing",
    })

    assert response.status_code == 404
    assert response.json()["detail"] == "Recipe missing not found"


def test_recipes_by_ingredient(client):
    response = client.get(f"{BASE_URL}/recipes-by-ingredient", params={"ingredient": "chicken"})

    assert response.status_code == 200
    assert response.json() == {"ingredient": "chicken", "recipe_ids": ["r1"]}


def test_recipes_by_ingredient_requires_value(client):
    response = client.get(f"{BASE_URL}/recipes-by-ingredient")

    assert response.status_code == 422


def test_unexpected_error_returns_500():
    matcher = AsyncMock()
    matcher.rank_recipes.side_effect = RuntimeError("boom")
    app.dependency_overrides[get_ingredient_matcher] = lambda: matcher
    try:
        client = TestClient(app, raise_server_exceptions=False)
        response = client.post(f"{BASE_URL}/find-recipes", json={"user_ingredients": ["garlic"]})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_total_matches_counts_before_limit(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={"user_ingredients": ["garlic"], "limit": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["total_matches"] == 2
    assert [m["recipe_id"] for m in data["matches"]] == ["r1"]


def test_match_percentage_serializes_as_integer(client):
    response = client.post(f"{BASE_URL}/find-recipes", json={"user_ingredients": ["garlic"]})

    assert response.status_code == 200
    assert '"match_percentage":100,' in response.text
    assert '"match_percentage":100.0' not in response.text
