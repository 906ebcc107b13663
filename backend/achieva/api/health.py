"""Health check endpoints for deployment readiness monitoring."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text

router = APIRouter()


@router.get("/health/live")
async def health_live():
    """Liveness probe - always returns ok if service is running."""
    return {"status": "ok", "checks": {"basic": "ok"}}


@router.get("/health/ready")
def health_ready():
    """Readiness probe - checks the database answers."""
    checks = {}
    overall_status = "ok"
    status_code = 200

    try:
        from ..models import get_session
        with get_session() as session:
            session.exec(text("SELECT 1"))
            checks["db"] = "ok"
    except Exception as e:
        logger.error({"type": "health", "check": "db", "error": str(e)})
        checks["db"] = f"error: {str(e)}"
        overall_status = "error"
        status_code = 503

    return JSONResponse(content={"status": overall_status, "checks": checks}, status_code=status_code)
