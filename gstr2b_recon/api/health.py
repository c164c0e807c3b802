from fastapi import APIRouter

from gstr2b_recon.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "ok", "service": settings.PROJECT_NAME}
