"""
Media upload service entry point
"""

from fastapi import FastAPI
import logging

from config import settings
from routes_media import api_router as media_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Caregiver Media Upload Service",
    description="Validates, optimizes and stores profile, gallery and certificate images",
    version="1.0.0",
)

app.include_router(media_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "storageBackend": settings.storage_backend}
