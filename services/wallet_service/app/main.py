from fastapi import FastAPI, HTTPException
from contextlib import asynccontextmanager

from shared.errors import http_exception_handler, unhandled_exception_handler
from shared.request_context import RequestIDMiddleware

from .routes import register_routes
from .startup import init_service_startup, setup_instrumentation, setup_logging, shutdown_instrumentation


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The wallet cache is process-wide state; it is built here so each worker starts cold
    await init_service_startup(app)
    yield
    await shutdown_instrumentation(app)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Wallet Settings Service", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    register_routes(app)
    setup_instrumentation(app)
    return app
