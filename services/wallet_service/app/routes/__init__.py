from fastapi import APIRouter, FastAPI

from .wallet_settings import router as wallet_settings_router
from . import system


def register_routes(app: FastAPI) -> None:
    router = APIRouter(prefix="/api/v1")
    router.include_router(wallet_settings_router, tags=["wallet-settings"])
    router.include_router(system.router, tags=["system"])
    app.include_router(router)
