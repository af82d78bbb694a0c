from __future__ import annotations

from pathlib import Path
from typing import Protocol

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from healthchecks.api_schemas import report_payload
from healthchecks.models import OutputFormat
from healthchecks.runner import RunReport

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


class Renderer(Protocol):
    def render(self, request: Request, report: RunReport) -> Response:
        ...


class JsonRenderer:
    media_type = "application/json"

    def render(self, request: Request, report: RunReport) -> Response:
        return JSONResponse(
            content=report_payload(report.passed, report.failed),
            status_code=report.status_code,
            media_type=self.media_type,
        )


class HtmlRenderer:
    template_name = "healthchecks.html"

    def render(self, request: Request, report: RunReport) -> Response:
        return templates.TemplateResponse(
            request,
            self.template_name,
            {"passed": report.passed, "failed": report.failed},
            status_code=report.status_code,
        )


def renderer_for(fmt: OutputFormat) -> Renderer:
    if fmt is OutputFormat.JSON:
        return JsonRenderer()
    return HtmlRenderer()
