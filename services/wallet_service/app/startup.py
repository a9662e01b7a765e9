from loguru import logger
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from fastapi import FastAPI
import sys

from .dependencies import build_wallet_gateway
from .settings import wallet_settings


def setup_logging() -> None:
    """Configure Loguru for consistent, structured service logs."""
    logger.remove()
    logger.add(
        sink=sys.stderr,
        level=wallet_settings().log_level.upper(),
        backtrace=False,
        diagnose=False,
        colorize=False,
        serialize=False,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
    )
    logger.info("Logging configured.")


def setup_instrumentation(app: FastAPI) -> None:
    """Attach OpenTelemetry tracing to the FastAPI app. This function is idempotent."""
    settings = wallet_settings()
    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled (WALLET_OTEL_ENABLED=false).")
        return
    if getattr(app.state, "tracer_provider", None) is not None:
        logger.info("OpenTelemetry instrumentation already initialized. Skipping reconfiguration.")
        return

    resource = Resource(attributes={SERVICE_NAME: settings.service_name})
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=str(settings.otel_endpoint)))
    )
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    app.state.tracer_provider = tracer_provider
    logger.info("OpenTelemetry instrumentation configured.")


async def init_service_startup(app: FastAPI) -> None:
    """Build the wallet settings gateway once per process."""
    settings = wallet_settings()
    tracer = trace.get_tracer(__name__)
    logger.info(f"Initializing {settings.service_name} ({settings.environment})...")

    for key, value in settings.safe_dict().items():
        logger.info(f"    {key}: {value}")

    with tracer.start_as_current_span("wallet.gateway_setup"):
        app.state.wallet_gateway = build_wallet_gateway(settings)

    logger.info(f"{settings.service_name} startup completed successfully.")


async def shutdown_instrumentation(app: FastAPI) -> None:
    """Flush and shut down the tracer provider, if one was configured."""
    tracer_provider = getattr(app.state, "tracer_provider", None)
    if tracer_provider is not None:
        tracer_provider.shutdown()
        logger.info("OpenTelemetry instrumentation shut down gracefully.")
