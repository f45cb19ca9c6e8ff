from fastapi import APIRouter, HTTPException

from assessments.core.redis_client import get_redis
from assessments.services.llm_client import llm_healthcheck

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        r = get_redis()
        r.ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready"}


@router.get("/health/llm")
async def llm():
    ok, meta = await llm_healthcheck()
    if not ok:
        raise HTTPException(status_code=503, detail=f"llm not ready: {meta}")
    return {"status": "ready"}
