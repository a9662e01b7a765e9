from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..settings import wallet_settings

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, str]:
    settings = wallet_settings()
    ready = getattr(request.app.state, "wallet_gateway", None) is not None
    return {"status": "ok" if ready else "starting", "service": settings.service_name}


@router.get("/metrics")
async def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
