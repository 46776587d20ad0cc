"""
Gateway service: the serviceA replica.

``/serviceb`` calls serviceB through the mesh and relays its answer. Any
failure on that call is reported in the response body with status 200.
"""

import json
import logging
import os
import time

import httpx
from fastapi import FastAPI, Response
from opentelemetry import trace

from ..logging import setup_unified_logging

DEFAULT_PORT = 3000
DEFAULT_BACKEND_URL = "http://serviceb.appmesh.local:3000/version"
BACKEND_TIMEOUT = 5.0

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def describe_failure(error: Exception) -> str:
    """Serialize ``error`` as a JSON string with its name and message."""
    return json.dumps({"name": type(error).__name__, "message": str(error)})


def create_app(
    backend_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the gateway service.

    Args:
        backend_url: URL of serviceB's version endpoint, defaults to
            ``SERVICE_B_URL``
        transport: Optional httpx transport used for the backend call
    """
    target_url = backend_url or os.getenv("SERVICE_B_URL", DEFAULT_BACKEND_URL)
    app = FastAPI(title="Gateway Service")
    app.state.backend_url = target_url

    @app.get("/health")
    async def health() -> Response:
        return Response(status_code=200)

    @app.get("/serviceb")
    async def call_service_b() -> dict:
        with tracer.start_as_current_span("gateway-service") as span:
            span.set_attribute("http.url", target_url)
            started = time.perf_counter()
            try:
                async with httpx.AsyncClient(
                    transport=transport, timeout=BACKEND_TIMEOUT
                ) as client:
                    response = await client.get(target_url)
                    response.raise_for_status()
                    body = response.json()
            except Exception as e:
                logger.exception("Call to %s failed", target_url)
                span.record_exception(e)
                return {"error": describe_failure(e)}

            logger.debug(
                "Call to %s took %.3fs", target_url, time.perf_counter() - started
            )
            return {"serviceB": body}

    return app


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", str(DEFAULT_PORT)))
    service_logger = setup_unified_logging("gateway-service", logger_name=__name__)
    app = create_app()
    service_logger.log_service_startup(backend_url=app.state.backend_url)
    service_logger.log_service_ready(port)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
