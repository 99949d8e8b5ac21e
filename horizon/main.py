"""HTTP entry point: /analyze, /economic-data, /ocr and the chart routes.

Process-scoped dependencies (settings, HTTP client, macro cache, model client,
orchestrator) are built once in the lifespan and read from ``app.state``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cache import TTLCache
from .charts import router as charts_router
from .config import Settings, settings as default_settings, log_provider_config
from .deps import get_orchestrator, get_tool_context
from .llm import ModelClient
from .ocr import perform_ocr
from .pipeline import OrchestrationError, Orchestrator
from .protocol import AnalyzeRequest, EconomicDataRequest, ErrorMsg, ResponseEnvelope
from .tools import Dispatcher, ToolContext, executor_map
from .tools.builtin.macro import fetch_indicator_series
from .tools.registry import INVALID_AI_RESPONSE
from .tts import SpeechSynthesizer

logger = logging.getLogger(__name__)

GENERIC_FAILURE = ("I'm sorry, I couldn't process your request due to an internal error. "
                   "Please try again.")


def classify_failure(exc: Exception) -> str:
    """User-facing message for an unexpected pipeline exception."""
    text = f"{type(exc).__name__} {exc}".lower()
    if any(k in text for k in ("api key", "api_key", "authentication", "unauthorized", "permission", "401", "403")):
        return ("I'm sorry, the AI service rejected our credentials. "
                "Please check the server's API key configuration.")
    if any(k in text for k in ("rate limit", "ratelimit", "429", "quota")):
        return "I'm receiving too many requests right now. Please wait a moment and try again."
    if any(k in text for k in ("status code", "httpstatus", "apistatus", "connection", "timeout", "timed out")):
        return "An upstream service returned an error. Please try again shortly."
    return GENERIC_FAILURE


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorMsg(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def build_tool_context(cfg: Settings, http: httpx.AsyncClient) -> ToolContext:
    return ToolContext(
        settings=cfg,
        http=http,
        macro_cache=TTLCache(ttl=cfg.macro_cache_ttl_s, max_entries=cfg.macro_cache_max),
    )


def create_app(cfg: Optional[Settings] = None,
               model: Optional[ModelClient] = None,
               speech: Optional[SpeechSynthesizer] = None,
               http: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the app; tests inject fakes for the model, speech and HTTP client."""
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_provider_config(cfg)
        client = http or httpx.AsyncClient(timeout=cfg.http_timeout_s)
        model_client = model or ModelClient.from_settings(cfg)
        speech_synth = speech or SpeechSynthesizer.from_settings(model_client.client, cfg)
        ctx = build_tool_context(cfg, client)

        app.state.tool_context = ctx
        app.state.model = model_client
        app.state.orchestrator = Orchestrator(model_client, Dispatcher(executor_map(), ctx), speech_synth)
        logger.info("Horizon backend ready")
        try:
            yield
        finally:
            if http is None:
                await client.aclose()

    app = FastAPI(title="Horizon AI Backend", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(charts_router)

    @app.get("/")
    async def root():
        return {"message": "Horizon AI Backend is running!"}

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post("/analyze", response_model=ResponseEnvelope, response_model_exclude_none=True,
              responses={400: {"model": ErrorMsg}, 500: {"model": ErrorMsg}, 502: {"model": ErrorMsg}})
    async def analyze(req: AnalyzeRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
        query = req.query.strip()
        if not query:
            return error_response(400, "Query is required.")

        try:
            return await orchestrator.run(query)
        except OrchestrationError as e:
            logger.error(f"Orchestration failed ({e.kind}): {e.details}")
            status_code = 502 if e.kind == INVALID_AI_RESPONSE else 500
            return error_response(status_code, e.message, e.details)
        except Exception as e:
            logger.error(f"Error during AI analysis: {e}", exc_info=True)
            return error_response(500, classify_failure(e), str(e))

    @app.post("/economic-data", responses={400: {"model": ErrorMsg}})
    async def economic_data(req: EconomicDataRequest, ctx: ToolContext = Depends(get_tool_context)):
        if not req.indicator_code.strip():
            return error_response(400, "indicatorCode is required.")
        outcome = await fetch_indicator_series(ctx, req.indicator_code, req.country_code,
                                               req.start_date, req.end_date)
        if not outcome.is_success:
            return error_response(400, outcome.error.message, outcome.error.detail)
        return outcome.success

    @app.post("/ocr", responses={400: {"model": ErrorMsg}, 502: {"model": ErrorMsg}})
    async def ocr(image: Optional[UploadFile] = File(None), ctx: ToolContext = Depends(get_tool_context)):
        if image is None:
            return error_response(400, "No image file uploaded.")
        data = await image.read()
        outcome = await perform_ocr(ctx, data, image.content_type or "image/png")
        if not outcome.is_success:
            return error_response(502, outcome.error.message, outcome.error.detail)
        return outcome.success

    return app


app = create_app()
