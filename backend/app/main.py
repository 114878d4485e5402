# backend/app/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from mangum import Mangum
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.matching import router as matching_router


logger = logging.getLogger(__name__)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(matching_router, prefix=f"{settings.API_V1_STR}/matching")

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# Handler for AWS Lambda
handler = Mangum(app)

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
