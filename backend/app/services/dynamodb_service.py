# backend/app/services/dynamodb_service.py

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import DataAccessError, NotFoundError
from app.core.schemas import RecipeIngredient, RecipeRecord
from app.services.ingredient_normalizer import create_normalized_ingredient

logger = logging.getLogger(__name__)

RECIPE_PREFIX = "RECIPE#"
INGREDIENT_PREFIX = "INGREDIENT#"
STEP_PREFIX = "STEP#"
TAG_PREFIX = "TAG#"
USER_PREFIX = "USER#"


class RecipeRepository(ABC):
    """Read access to the recipe catalog used by the matcher."""

    @abstractmethod
    async def fetch_all_recipes(self) -> List[RecipeRecord]:
        """Return every recipe in the catalog with its dietary tags, without ingredients."""

    @abstractmethod
    async def fetch_recipe_ingredients(self, recipe_id: str) -> List[str]:
        """Return the unique ingredient names of one recipe."""

    @abstractmethod
    async def fetch_recipes_by_ingredient_key(self, ingredient_key: str) -> List[str]:
        """Return ids of recipes indexed under a normalized ingredient key."""

    @abstractmethod
    async def fetch_recipe_by_id(self, recipe_id: str) -> Optional[RecipeRecord]:
        """Return a recipe's main record, or None if it does not exist."""

    @abstractmethod
    async def fetch_full_recipe(self, recipe_id: str) -> RecipeRecord:
        """Return a recipe with its ingredients, steps and tags.

        Raises NotFoundError when the recipe does not exist.
        """


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _recipe_id_from_key(key: str) -> str:
    return key[len(RECIPE_PREFIX):] if key.startswith(RECIPE_PREFIX) else key


class DynamoDBRecipeRepository(RecipeRepository):
    """Recipe catalog stored in a single DynamoDB table.

    Every entity of a recipe shares the partition key ``RECIPE#<id>``; the sort
    key tells the recipe record (``RECIPE#<id>``) apart from its ingredients
    (``INGREDIENT#<key>``), steps (``STEP#<n>``) and tags (``TAG#<tag>``).
    Ingredient and variation entities are projected into the ingredient index
    under ``INGREDIENT#<key>``.

    Reads run in worker threads. boto3 resources are not thread-safe, so every
    thread gets its own session, resource and Table.
    """

    def __init__(
        self,
        table_name: Optional[str] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None
    ):
        """Initialize DynamoDB configuration."""
        self.table_name = table_name or settings.RECIPES_TABLE
        self.index_name = settings.INGREDIENT_INDEX_NAME
        self.region_name = region_name or settings.AWS_REGION
        self.endpoint_url = endpoint_url or settings.DYNAMODB_ENDPOINT_URL
        self._local = threading.local()

    @property
    def dynamodb(self):
        """DynamoDB resource owned by the calling thread."""
        resource = getattr(self._local, 'dynamodb', None)
        if resource is None:
            resource = boto3.session.Session().resource(
                'dynamodb',
                aws_access_key_id=settings.AWS_ACCESS_KEY,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=self.region_name,
                endpoint_url=self.endpoint_url
            )
            self._local.dynamodb = resource
        return resource

    @property
    def table(self):
        """Recipes table bound to the calling thread's resource."""
        table = getattr(self._local, 'table', None)
        if table is None:
            table = self.dynamodb.Table(self.table_name)
            self._local.table = table
        return table

    def ensure_table_exists(self):
        """Ensure the recipes table exists with the ingredient index."""
        try:
            self.table.load()
        except self.dynamodb.meta.client.exceptions.ResourceNotFoundException:
            logger.info("Creating table %s", self.table_name)
            self._local.table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': 'PK', 'KeyType': 'HASH'},
                    {'AttributeName': 'SK', 'KeyType': 'RANGE'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'PK', 'AttributeType': 'S'},
                    {'AttributeName': 'SK', 'AttributeType': 'S'},
                    {'AttributeName': 'GSI3PK', 'AttributeType': 'S'},
                    {'AttributeName': 'GSI3SK', 'AttributeType': 'S'}
                ],
                GlobalSecondaryIndexes=[
                    {
                        'IndexName': self.index_name,
                        'KeySchema': [
                            {'AttributeName': 'GSI3PK', 'KeyType': 'HASH'},
                            {'AttributeName': 'GSI3SK', 'KeyType': 'RANGE'}
                        ],
                        'Projection': {'ProjectionType': 'ALL'}
                    }
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            self.table.wait_until_exists()

    def _recipe_to_items(self, recipe: RecipeRecord) -> List[Dict[str, Any]]:
        """Convert a recipe into its single-table entities."""
        pk = f"{RECIPE_PREFIX}{recipe.recipe_id}"
        items = [{
            'PK': pk,
            'SK': pk,
            'entity_type': 'recipe',
            'title': recipe.title,
            'description': recipe.description or None,
            'author_id': f"{USER_PREFIX}{recipe.author}",
            'cooking_time': recipe.cooking_time,
            'difficulty_level': recipe.difficulty,
            'servings': recipe.servings,
            'image_url': recipe.image_url
        }]

        # Variations go first so that a main ingredient entity sharing the same
        # sort key as another ingredient's variation is written last
        variation_items = []
        ingredient_items = []
        for ingredient in recipe.ingredients:
            normalized = create_normalized_ingredient(ingredient.name)
            base = {
                'PK': pk,
                'name': ingredient.name,
                'normalized_name': normalized.normalized,
                'quantity': ingredient.quantity,
                'unit': ingredient.unit,
                'GSI3SK': pk
            }
            ingredient_items.append({
                **base,
                'SK': f"{INGREDIENT_PREFIX}{normalized.normalized}",
                'entity_type': 'ingredient',
                'GSI3PK': f"{INGREDIENT_PREFIX}{normalized.normalized}"
            })
            for variation in normalized.variations:
                if variation == normalized.normalized:
                    continue
                variation_items.append({
                    **base,
                    'SK': f"{INGREDIENT_PREFIX}{variation}",
                    'entity_type': 'ingredient_variation',
                    'variation': variation,
                    'GSI3PK': f"{INGREDIENT_PREFIX}{variation}"
                })
        items.extend(variation_items)
        items.extend(ingredient_items)

        for order, instruction in enumerate(recipe.instructions, start=1):
            items.append({
                'PK': pk,
                'SK': f"{STEP_PREFIX}{order}",
                'entity_type': 'step',
                'order': order,
                'instruction': instruction
            })

        for tag in recipe.dietary_tags:
            items.append({
                'PK': pk,
                'SK': f"{TAG_PREFIX}{tag}",
                'entity_type': 'tag',
                'tag': tag
            })

        # Remove None values as DynamoDB doesn't support them
        return [{k: v for k, v in item.items() if v is not None} for item in items]

    def _item_to_recipe(self, item: Dict[str, Any]) -> RecipeRecord:
        """Convert a recipe entity back to a RecipeRecord."""
        author = item.get('author_id')
        return RecipeRecord(
            recipe_id=_recipe_id_from_key(item['PK']),
            title=item.get('title', ''),
            description=item.get('description') or '',
            author=author.replace(USER_PREFIX, '') if author else 'Unknown',
            cooking_time=_to_int(item.get('cooking_time')),
            difficulty=item.get('difficulty_level') or 'unknown',
            servings=_to_int(item.get('servings')),
            image_url=item.get('image_url')
        )

    def store_recipe(self, recipe: RecipeRecord) -> str:
        """Store a recipe and all of its entities."""
        self.store_recipes_batch([recipe])
        return recipe.recipe_id

    def store_recipes_batch(self, recipes: List[RecipeRecord]) -> List[str]:
        try:
            with self.table.batch_writer(overwrite_by_pkeys=['PK', 'SK']) as batch:
                for recipe in recipes:
                    for item in self._recipe_to_items(recipe):
                        batch.put_item(Item=item)
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to store recipes in %s", self.table_name, exc_info=True)
            raise DataAccessError(f"Failed to store recipes: {e}") from e
        return [recipe.recipe_id for recipe in recipes]

    def _collect(self, operation: str, **params) -> List[Dict[str, Any]]:
        """Run a scan or query, following LastEvaluatedKey until exhausted."""
        call = self.table.scan if operation == 'scan' else self.table.query
        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = call(**params)
                page = response.get('Items', [])
                items.extend(page)
                logger.debug("%s on %s returned %d items", operation, self.table_name, len(page))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                params['ExclusiveStartKey'] = last_key
        except (BotoCoreError, ClientError) as e:
            logger.error("DynamoDB %s on %s failed", operation, self.table_name, exc_info=True)
            raise DataAccessError(f"DynamoDB {operation} failed: {e}") from e
        return items

    def _get_item(self, key: Dict[str, str]) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("DynamoDB get_item on %s failed", self.table_name, exc_info=True)
            raise DataAccessError(f"DynamoDB get_item failed: {e}") from e
        return response.get('Item')

    async def fetch_all_recipes(self) -> List[RecipeRecord]:
        items = await asyncio.to_thread(
            self._collect,
            'scan',
            FilterExpression=Attr('entity_type').is_in(['recipe', 'tag'])
        )
        recipes: Dict[str, RecipeRecord] = {}
        tags: Dict[str, List[str]] = {}
        for item in items:
            if item.get('entity_type') == 'recipe':
                recipes[item['PK']] = self._item_to_recipe(item)
            elif item.get('tag'):
                tags.setdefault(item['PK'], []).append(item['tag'])

        for pk, recipe in recipes.items():
            recipe.dietary_tags = tags.get(pk, [])
        return list(recipes.values())

    async def fetch_recipe_ingredients(self, recipe_id: str) -> List[str]:
        items = await asyncio.to_thread(
            self._collect,
            'query',
            KeyConditionExpression=Key('PK').eq(f"{RECIPE_PREFIX}{recipe_id}")
            & Key('SK').begins_with(INGREDIENT_PREFIX)
        )
        # Variation entities repeat the ingredient name, keep the main ones only
        names = [
            item['name'] for item in items
            if item.get('entity_type') == 'ingredient' and item.get('name')
        ]
        return list(dict.fromkeys(names))

    async def fetch_recipes_by_ingredient_key(self, ingredient_key: str) -> List[str]:
        items = await asyncio.to_thread(
            self._collect,
            'query',
            IndexName=self.index_name,
            KeyConditionExpression=Key('GSI3PK').eq(f"{INGREDIENT_PREFIX}{ingredient_key}")
        )
        return list(dict.fromkeys(_recipe_id_from_key(item['PK']) for item in items))

    async def fetch_recipe_by_id(self, recipe_id: str) -> Optional[RecipeRecord]:
        pk = f"{RECIPE_PREFIX}{recipe_id}"
        item = await asyncio.to_thread(self._get_item, {'PK': pk, 'SK': pk})
        if item:
            return self._item_to_recipe(item)
        return None

    async def fetch_full_recipe(self, recipe_id: str) -> RecipeRecord:
        items = await asyncio.to_thread(
            self._collect,
            'query',
            KeyConditionExpression=Key('PK').eq(f"{RECIPE_PREFIX}{recipe_id}")
        )
        main = next((item for item in items if item.get('entity_type') == 'recipe'), None)
        if main is None:
            raise NotFoundError(recipe_id)

        recipe = self._item_to_recipe(main)
        recipe.ingredients = [
            RecipeIngredient(
                name=item['name'],
                quantity=str(item['quantity']) if item.get('quantity') is not None else None,
                unit=item.get('unit'),
                normalized_name=item.get('normalized_name')
            )
            for item in items
            if item.get('entity_type') == 'ingredient'
        ]
        steps = sorted(
            (item for item in items if item.get('entity_type') == 'step'),
            key=lambda item: _to_int(item.get('order'))
        )
        recipe.instructions = [step.get('instruction', '') for step in steps]
        recipe.dietary_tags = [item['tag'] for item in items if item.get('entity_type') == 'tag']
        return recipe
