"""
Liveness probe used by the editor frontend and the deployment platform.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, ping_database
from app.models.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Report ``healthy`` when the database answers, ``degraded`` otherwise."""
    database_ok = await ping_database(db)
    return HealthCheckResponse(
        status="healthy" if database_ok else "degraded",
        database="ok" if database_ok else "error",
        timestamp=datetime.now(timezone.utc),
    )
