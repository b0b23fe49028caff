# API Router for Health Checks
from fastapi import APIRouter, Request
import logging

from kyc_case_service.app.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/health", tags=["Monitoring"])
async def health_check(request: Request):
    components = {"case_store": settings.CASE_STORE_BACKEND}
    db = getattr(request.app.state, "db", None)
    if db is not None:
        try:
            await db.command('ping')
            components["mongodb"] = "connected"
        except Exception as e:
            logger.error(f"MongoDB health check ping failed: {e}")
            components["mongodb"] = "disconnected"
    components["notifications"] = "kafka" if settings.KAFKA_BOOTSTRAP_SERVERS else "log-only"
    return {"status": "ok", "components": components, "service_name": settings.SERVICE_NAME_API}
