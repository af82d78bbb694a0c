"""
Health check router.

Mount the returned APIRouter on the application to expose the checks:

    runner = HealthcheckRunner.from_options(options)
    app.include_router(build_router(runner, options.format, "/_healthchecks"))

Each GET runs every check against this server's own address and port,
keeping the Host header from the check URL.

Response codes:
    200 - all checks passed
    404 - no checks configured
    500 - at least one check failed
"""
from __future__ import annotations

from fastapi import APIRouter, Request, Response
from starlette.background import BackgroundTask

from healthchecks.api_schemas import RunReportResponse
from healthchecks.checks.resolver import DEFAULT_PORTS, LoopbackTarget
from healthchecks.models import OutputFormat
from healthchecks.rendering import renderer_for
from healthchecks.runner import HealthcheckRunner

REQUEST_ID_HEADER = "x-request-id"


def target_from_request(request: Request) -> LoopbackTarget:
    """Local address and port the inbound request arrived on."""
    protocol = "https" if request.scope.get("scheme") in {"https", "wss"} else "http"
    server = request.scope.get("server")
    if server and server[1] is not None:
        address, port = server[0], int(server[1])
    else:
        address, port = "127.0.0.1", DEFAULT_PORTS[protocol]
    return LoopbackTarget(protocol=protocol, address=address, port=port)


def build_router(
    runner: HealthcheckRunner,
    fmt: OutputFormat = OutputFormat.HTML,
    path: str = "/_healthchecks",
) -> APIRouter:
    router = APIRouter(tags=["healthchecks"])
    renderer = renderer_for(fmt)

    @router.get(
        path,
        summary="Run Healthchecks",
        description="Probes every configured check against this server and reports passed/failed.",
        responses={
            200: {"model": RunReportResponse, "description": "All checks passed"},
            404: {"description": "No checks configured"},
            500: {"model": RunReportResponse, "description": "One or more checks failed"},
        },
    )
    async def run_healthchecks(request: Request) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER)
        report = await runner.run(target_from_request(request), request_id=request_id)

        response = renderer.render(request, report)
        if report.failed:
            response.background = BackgroundTask(runner.notify, report, request_id)
        return response

    return router
