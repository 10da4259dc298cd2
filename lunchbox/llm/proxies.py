"""
Raw generation proxies for the Gemini REST API and the OpenAI-compatible
OpenRouter API.

Both take ``(model, contents, config)`` and return the generated text. The
API keys stay on the server: Gemini receives its key in a header rather than
the URL so it never shows up in access logs.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ConfigurationError, UpstreamError
from ..logging_config import preview
from .config import DEFAULT_PROXY_CONFIG, ProxyConfig
from .models import GenerationConfig

logger = logging.getLogger(__name__)

JSON_MIME_TYPE = "application/json"


def _post(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    vendor: str,
    timeout: float,
    http_client: httpx.Client | None,
) -> dict[str, Any]:
    client = http_client or httpx.Client(timeout=timeout)
    try:
        response = client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as exc:
        logger.warning("%s request timed out", vendor)
        raise UpstreamError(details=f"{vendor} API timed out") from exc
    except httpx.HTTPError as exc:
        logger.warning("%s request failed: %s", vendor, type(exc).__name__)
        raise UpstreamError(details=f"{vendor} API unreachable") from exc
    finally:
        if http_client is None:
            client.close()

    if response.is_error:
        logger.error("%s API error status=%s body=%r", vendor, response.status_code, preview(response.text))
        raise UpstreamError(
            details=f"{vendor} API returned {response.status_code}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(details=f"{vendor} API returned a non-JSON body") from exc


def build_gemini_body(contents: str, config: GenerationConfig | None) -> dict[str, Any]:
    body: dict[str, Any] = {"contents": [{"parts": [{"text": contents}]}]}
    if config is None:
        return body

    generation: dict[str, Any] = {}
    if config.temperature is not None:
        generation["temperature"] = config.temperature
    if config.response_mime_type:
        generation["responseMimeType"] = config.response_mime_type
    if config.response_schema:
        generation["responseSchema"] = config.response_schema
    if generation:
        body["generationConfig"] = generation

    if config.system_instruction:
        body["systemInstruction"] = {"parts": [{"text": config.system_instruction}]}
    return body


def generate_gemini(
    model: str,
    contents: str,
    config: GenerationConfig | None = None,
    proxy_config: ProxyConfig = DEFAULT_PROXY_CONFIG,
    http_client: httpx.Client | None = None,
) -> str:
    if not proxy_config.gemini_api_key:
        raise ConfigurationError(details="Gemini API key is not configured")

    logger.info("Gemini request model=%s prompt=%r", model, preview(contents))
    data = _post(
        f"{proxy_config.gemini_base_url}/models/{model}:generateContent",
        build_gemini_body(contents, config),
        {"x-goog-api-key": proxy_config.gemini_api_key},
        "Gemini",
        proxy_config.timeout,
        http_client,
    )

    try:
        return data["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        logger.warning("Gemini response carried no text")
        return ""


def build_openrouter_body(
    model: str, contents: str, config: GenerationConfig | None
) -> dict[str, Any]:
    messages: list[dict[str, str]] = []
    if config and config.system_instruction:
        messages.append({"role": "system", "content": config.system_instruction})
    messages.append({"role": "user", "content": contents})

    body: dict[str, Any] = {"model": model, "messages": messages}
    if config and config.temperature is not None:
        body["temperature"] = config.temperature
    if config and config.response_mime_type == JSON_MIME_TYPE:
        body["response_format"] = {"type": "json_object"}
    return body


def generate_openrouter(
    model: str,
    contents: str,
    config: GenerationConfig | None = None,
    proxy_config: ProxyConfig = DEFAULT_PROXY_CONFIG,
    http_client: httpx.Client | None = None,
) -> str:
    if not proxy_config.openrouter_api_key:
        raise ConfigurationError(details="OpenRouter API key is not configured")

    body = build_openrouter_body(model, contents, config)
    logger.info(
        "OpenRouter request model=%s messages=%d temperature=%s",
        model, len(body["messages"]), body.get("temperature"),
    )
    data = _post(
        proxy_config.openrouter_url,
        body,
        {
            "Authorization": f"Bearer {proxy_config.openrouter_api_key}",
            "HTTP-Referer": proxy_config.openrouter_referer,
            "X-Title": proxy_config.openrouter_title,
        },
        "OpenRouter",
        proxy_config.timeout,
        http_client,
    )

    try:
        text = data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        text = ""
    if not text:
        logger.warning("OpenRouter response carried no text")
    if data.get("model"):
        logger.info("OpenRouter model used: %s", data["model"])
    return text
