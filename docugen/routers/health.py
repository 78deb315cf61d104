"""
Health check endpoint.
"""
from fastapi import APIRouter
from datetime import datetime
import logging

from docugen.config import settings
from docugen.database import check_db
from docugen.models.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of the store plus whether the
        identity provider and Gemini are configured
    """
    db_status = await check_db()
    identity_status = "ok" if settings.identity_configured else "not_configured"
    generation_status = "ok" if settings.generation_configured else "not_configured"

    # Overall status
    all_ok = all(s == "ok" for s in (db_status, identity_status, generation_status))
    overall_status = "healthy" if all_ok else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        identity=identity_status,
        generation=generation_status,
        timestamp=datetime.utcnow()
    )
