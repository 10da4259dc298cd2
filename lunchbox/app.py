from __future__ import annotations

import json
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .enrichment.menu import extract_menu_from_website
from .enrichment.models import MenuExtractRequest, MenuExtractResponse
from .errors import ConfigurationError, LunchboxError, ParseError, UpstreamError, ValidationError
from .llm import groq_client
from .llm.config import DEFAULT_LLM_CONFIG, DEFAULT_PROXY_CONFIG, LLMConfig, ProxyConfig
from .llm.models import GatewayRequest, GenerateRequest, TextResponse
from .llm.proxies import generate_gemini, generate_openrouter
from .llm.schemas import SCHEMAS, parse_json
from .logging_config import configure_logging
from .ratelimit.dependency import rate_limit
from .recommendations.cache import get_cache_stats
from .recommendations.engine import decide_lunch, generate_loading_logs
from .recommendations.models import (
    DecisionResponse,
    LoadingLogsRequest,
    LoadingLogsResponse,
    SearchRequest,
)

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Lunchbox Recommendation API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey", "X-Application-Name"],
)


# ── Error handling ───────────────────────────────────────────────────────


@app.exception_handler(LunchboxError)
def lunchbox_error_handler(request: Request, exc: LunchboxError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({
        ".".join(str(part) for part in err.get("loc", ())[1:]) or "body"
        for err in exc.errors()
    })
    error = ValidationError(details=", ".join(fields))
    return JSONResponse(status_code=error.status_code, content=error.to_body())


# ── Configuration dependencies ───────────────────────────────────────────


def get_llm_config() -> LLMConfig:
    return DEFAULT_LLM_CONFIG


def get_proxy_config() -> ProxyConfig:
    return DEFAULT_PROXY_CONFIG


def require_model_key(config: LLMConfig = Depends(get_llm_config)) -> LLMConfig:
    if not config.api_key:
        logger.error("GROQ_API_KEY is missing in environment variables.")
        raise ConfigurationError()
    return config


def require_gemini_key(config: ProxyConfig = Depends(get_proxy_config)) -> ProxyConfig:
    if not config.gemini_api_key:
        logger.error("GEMINI_API_KEY is missing in environment variables.")
        raise ConfigurationError()
    return config


def require_openrouter_key(config: ProxyConfig = Depends(get_proxy_config)) -> ProxyConfig:
    if not config.openrouter_api_key:
        logger.error("OPENROUTER_API_KEY is missing in environment variables.")
        raise ConfigurationError()
    return config


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/cache/stats")
def cache_stats() -> dict:
    return get_cache_stats()


# ── Decision gateway ─────────────────────────────────────────────────────


@app.post(
    "/recommendations",
    response_model=TextResponse,
    dependencies=[Depends(rate_limit("gateway"))],
)
def recommendations_gateway(
    body: GatewayRequest,
    config: LLMConfig = Depends(require_model_key),
) -> TextResponse:
    schema = SCHEMAS[body.schema_type]
    temperature = body.config.temperature if body.config else None

    raw_text = groq_client.invoke(
        body.system_instruction,
        body.prompt,
        schema,
        config,
        temperature=temperature,
    )

    try:
        items, errors = schema.decode(parse_json(raw_text))
    except ParseError as exc:
        raise UpstreamError(details=exc.details) from exc
    if errors:
        logger.warning("Gateway output failed schema at item %d: %s", errors[0].index, errors[0].reason)
        raise UpstreamError(details="Model output failed schema validation")

    return TextResponse(text=json.dumps(items, ensure_ascii=False))


@app.post(
    "/decide",
    response_model=DecisionResponse,
    dependencies=[Depends(rate_limit("decide"))],
)
def decide(
    body: SearchRequest,
    config: LLMConfig = Depends(require_model_key),
) -> DecisionResponse:
    return decide_lunch(body, config)


@app.post(
    "/loading-logs",
    response_model=LoadingLogsResponse,
    dependencies=[Depends(rate_limit("loading_logs"))],
)
def loading_logs(
    body: LoadingLogsRequest,
    config: LLMConfig = Depends(require_model_key),
) -> LoadingLogsResponse:
    return LoadingLogsResponse(logs=generate_loading_logs(body.vibe, body.address, config))


# ── Model proxies ────────────────────────────────────────────────────────


@app.post(
    "/ai/generate/gemini",
    response_model=TextResponse,
    dependencies=[Depends(rate_limit("gemini"))],
)
def gemini_generate(
    body: GenerateRequest,
    proxy_config: ProxyConfig = Depends(require_gemini_key),
) -> TextResponse:
    return TextResponse(text=generate_gemini(body.model, body.contents, body.config, proxy_config))


@app.post(
    "/ai/generate/openrouter",
    response_model=TextResponse,
    dependencies=[Depends(rate_limit("openrouter"))],
)
def openrouter_generate(
    body: GenerateRequest,
    proxy_config: ProxyConfig = Depends(require_openrouter_key),
) -> TextResponse:
    return TextResponse(text=generate_openrouter(body.model, body.contents, body.config, proxy_config))


# ── Enrichment ───────────────────────────────────────────────────────────


@app.post(
    "/menu-extract",
    response_model=MenuExtractResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("menu_extract"))],
)
def menu_extract(
    body: MenuExtractRequest,
    proxy_config: ProxyConfig = Depends(require_gemini_key),
) -> MenuExtractResponse:
    return extract_menu_from_website(
        body.website_url,
        body.restaurant_name,
        proxy_config=proxy_config,
    )
