"""
BetSense FastAPI Server

REST endpoints:
- POST /api/analyze   match analysis (validated model answer)
- GET  /api/sports    supported sports grouped by category
- GET  /health        liveness and provider configuration
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from betsense.config import SETTINGS
from betsense.errors import ConfigurationError, ProviderError
from betsense.pipeline import Analyzer
from betsense.schemas import AnalysisRequest
from betsense.validator import ValidationFailure

logger = logging.getLogger(__name__)


def _error(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


def create_app(analyzer: Optional[Analyzer] = None) -> FastAPI:
    app = FastAPI(
        title="BetSense API",
        description="Validated AI match analysis",
        version="1.0.0",
    )
    app.state.analyzer = analyzer or Analyzer()

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "_root"
        return _error(400, {
            "code": "InvalidRequest",
            "field": field,
            "message": first.get("msg", "Malformed request"),
            "meta": {"errors": len(errors)},
        })

    @app.get("/health")
    def health():
        gateway = app.state.analyzer.gateway
        return {
            "status": "ok",
            "provider": gateway.settings.provider,
            "provider_configured": gateway.configured,
            "dry_run": gateway.settings.dry_run,
        }

    @app.get("/api/sports")
    def list_sports():
        registry = app.state.analyzer.registry
        grouped = registry.grouped_by_category()
        return {
            "default": registry.default_key,
            "categories": [
                {
                    "id": category["id"],
                    "name": category["name"],
                    "sports": [
                        {
                            "id": p.id,
                            "name": p.display_name,
                            "hasDraw": p.terminology.has_draw,
                            "matchTerm": p.terminology.match_term,
                        }
                        for p in grouped[category["name"]]
                    ],
                }
                for category in registry.categories()
            ],
        }

    @app.post("/api/analyze")
    def analyze(body: AnalysisRequest):
        try:
            outcome = app.state.analyzer.analyze(body)
        except ConfigurationError as e:
            logger.error("Analysis unavailable: %s", e)
            return _error(503, e.to_dict())
        except ProviderError as e:
            logger.error("Provider failure for %s vs %s: %s", body.home_team, body.away_team, e)
            return _error(502, e.to_dict())

        if isinstance(outcome, ValidationFailure):
            return _error(422, outcome.to_dict())
        return outcome.to_response()

    return app


logging.basicConfig(
    level=getattr(logging, SETTINGS.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

app = create_app()
