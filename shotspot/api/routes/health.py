"""Health check route handler."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from shotspot.api.routes import error_message
from shotspot.database import db
from shotspot.utils.datetime_utils import utcnow, isoformat

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status; 503 when the database cannot be reached
    """
    try:
        await db.ping_database()
        return {"status": "healthy", "database": "connected", "timestamp": isoformat(utcnow())}
    except Exception as e:
        logger.error(f"Health check failed: {error_message(e)}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "timestamp": isoformat(utcnow())},
        )
