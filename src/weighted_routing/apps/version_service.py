"""
Version service: the replica behind each serviceB route.

Answers ``/version`` with the version it was started with so weighted
routing between replicas can be observed from the caller side.
"""

import os

from fastapi import FastAPI, Response
from opentelemetry import trace

from ..logging import setup_unified_logging

DEFAULT_PORT = 3000
DEFAULT_VERSION = "v1"

tracer = trace.get_tracer(__name__)


def create_app(version: str | None = None) -> FastAPI:
    """Build the version service; ``version`` defaults to ``SERVICE_VERSION``."""
    service_version = version or os.getenv("SERVICE_VERSION", DEFAULT_VERSION)
    app = FastAPI(title="Version Service", version=service_version)
    app.state.service_version = service_version

    @app.get("/health")
    async def health() -> Response:
        return Response(status_code=200)

    @app.get("/version")
    async def get_version() -> dict[str, str]:
        with tracer.start_as_current_span("version-service") as span:
            span.set_attribute("service.version", service_version)
            return {"version": service_version}

    return app


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", str(DEFAULT_PORT)))
    service_logger = setup_unified_logging("version-service")
    app = create_app()
    service_logger.log_service_startup(version=app.state.service_version)
    service_logger.log_service_ready(port)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
