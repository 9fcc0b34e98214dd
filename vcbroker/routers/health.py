from datetime import datetime

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Liveness probe. No database or sandbox checks, always 200."""
    return {
        "ok": True,
        "service": "vc-lifecycle-broker",
        "time": datetime.utcnow().isoformat(),
    }
