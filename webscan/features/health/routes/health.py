from fastapi import APIRouter, Request, status

from webscan.platform.config import settings
from webscan.platform.response import api_response


router = APIRouter()

@router.get("/health", tags=["health"])
async def health_check(request: Request):
    cache = getattr(request.app.state, "result_cache", None)
    return api_response(
        data={
            "status": "ok",
            "service": settings.APP_NAME,
            "database": "connected" if cache is not None and cache.is_connected else "disconnected",
        },
        status_code=status.HTTP_200_OK,
    )
