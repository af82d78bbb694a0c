from fastapi import FastAPI

from healthchecks.api_schemas import ConfigResponse, HealthResponse, RegistryResponse
from healthchecks.config import settings
from healthchecks.models import HealthchecksOptions
from healthchecks.router import build_router
from healthchecks.runner import HealthcheckRunner, build_on_failure

options = HealthchecksOptions.from_settings(settings, on_failure=build_on_failure())
runner = HealthcheckRunner.from_options(options)


app = FastAPI(
    title="Healthchecks",
    version="1.0.0",
    description=(
        "Self-diagnostic health checks: probes the endpoints listed in the "
        "checks file against this server's own address and reports passed/failed."
    ),
)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["system"],
    summary="Health Check",
    description="Liveness endpoint used by probes and orchestration.",
)
def health():
    return {"status": "ok"}


@app.get(
    "/config",
    response_model=ConfigResponse,
    tags=["system"],
    summary="Current Effective Config",
    description="Returns non-secret runtime config values.",
)
def config():
    return {
        "checks_file": str(options.source),
        "path": settings.HEALTHCHECKS_PATH,
        "timeout_s": options.timeout_s,
        "format": options.format.value,
        "notifications": options.on_failure is not None,
    }


@app.get(
    "/api/registry",
    response_model=RegistryResponse,
    tags=["registry"],
    summary="Loaded Checks",
    description="Returns the checks loaded at startup, keyed by URL with their expected text.",
)
def registry():
    return {
        "checks": runner.registry.as_mapping(),
        "count": len(runner.registry),
    }


app.include_router(build_router(runner, options.format, settings.HEALTHCHECKS_PATH))
