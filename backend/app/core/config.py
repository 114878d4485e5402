from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""
    PROJECT_NAME: str = "Recipe Matcher API"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    # AWS Settings
    AWS_REGION: str = "us-east-1"
    # AWS credentials - optional if using IAM roles or aws configure
    AWS_ACCESS_KEY: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    # DynamoDB settings
    RECIPES_TABLE: str = "recipe-matcher-recipes-v2"
    INGREDIENT_INDEX_NAME: str = "GSI3"
    DYNAMODB_ENDPOINT_URL: Optional[str] = None  # Set for local testing

    # Matching defaults
    MIN_MATCH_PERCENTAGE: int = 50
    MAX_RESULTS: int = 20
    MIN_INGREDIENT_SCORE: int = 50
    ENRICHMENT_CONCURRENCY: int = 10
    # JSON file replacing the packaged ingredient alternatives table
    INGREDIENT_ALTERNATIVES_PATH: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
