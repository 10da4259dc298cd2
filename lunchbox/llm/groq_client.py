from __future__ import annotations

import logging
import time

import groq
from groq import Groq

from ..errors import ConfigurationError, UpstreamError
from ..logging_config import preview
from .config import DEFAULT_LLM_CONFIG, LLMConfig
from .schemas import OutputSchema

logger = logging.getLogger(__name__)


def _response_format(schema: OutputSchema) -> dict:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema.name,
            "description": schema.description,
            "schema": schema.envelope(),
        },
    }


def invoke(
    system_instruction: str | None,
    user_payload: str,
    output_schema: OutputSchema,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
    *,
    model: str | None = None,
    temperature: float | None = None,
) -> str:
    """
    Make exactly one Groq call constrained to ``output_schema``.

    Returns the raw response text; parsing and validation belong to the
    caller. Transport, timeout and API failures raise a single
    ``UpstreamError`` and are never retried here.
    """
    if not config.enabled or not config.api_key:
        raise ConfigurationError(details="Model API key is not configured")

    messages: list[dict[str, str]] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    messages.append({"role": "user", "content": user_payload})

    model_name = model or config.model
    logger.info("Model request model=%s prompt=%r", model_name, preview(user_payload))
    started = time.perf_counter()

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout, max_retries=0)
        response = client.chat.completions.create(
            model=model_name,
            messages=messages,
            max_tokens=config.max_tokens,
            temperature=config.temperature if temperature is None else temperature,
            response_format=_response_format(output_schema),
        )
    except groq.APIStatusError as exc:
        logger.warning("Model API returned %s", exc.status_code)
        raise UpstreamError(
            details=f"Model API returned {exc.status_code}",
            status_code=exc.status_code,
        ) from exc
    except groq.APITimeoutError as exc:
        logger.warning("Model API timed out after %.1fs", config.timeout)
        raise UpstreamError(details="Model API timed out") from exc
    except groq.APIError as exc:
        logger.warning("Model API call failed: %s", type(exc).__name__)
        raise UpstreamError(details="Model API unreachable") from exc

    content = response.choices[0].message.content or ""
    elapsed_ms = round((time.perf_counter() - started) * 1000)
    logger.info("Model response model=%s chars=%d elapsed_ms=%d", model_name, len(content), elapsed_ms)
    return content
