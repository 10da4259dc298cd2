import json
from unittest.mock import MagicMock, patch

import groq
import httpx
import pytest

from lunchbox.errors import ConfigurationError, UpstreamError
from lunchbox.llm.config import LLMConfig
from lunchbox.llm.groq_client import invoke
from lunchbox.llm.schemas import LOADING_LOG_SCHEMA, RECOMMENDATION_SCHEMA

ENABLED_CONFIG = LLMConfig(api_key="test-key", enabled=True)
DISABLED_CONFIG = LLMConfig(api_key="test-key", enabled=False)
NO_KEY_CONFIG = LLMConfig(api_key="", enabled=True)

GROQ_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _mock_groq_response(content: str | None) -> MagicMock:
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_returns_raw_text(mock_groq_cls):
    llm_response = json.dumps({"items": ["PARSING SECTOR GRID..."]})
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(llm_response)

    result = invoke("system", "user", LOADING_LOG_SCHEMA, ENABLED_CONFIG)

    assert result == llm_response


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_sends_structured_output_directive(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("[]")

    invoke("Be an analyst.", "Candidates: []", RECOMMENDATION_SCHEMA, ENABLED_CONFIG)

    kwargs = mock_groq_cls.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == ENABLED_CONFIG.model
    assert kwargs["temperature"] == 0.5
    assert kwargs["messages"] == [
        {"role": "system", "content": "Be an analyst."},
        {"role": "user", "content": "Candidates: []"},
    ]
    response_format = kwargs["response_format"]
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "lunch_recommendations"
    assert response_format["json_schema"]["schema"] == RECOMMENDATION_SCHEMA.envelope()


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_without_system_instruction_overrides(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("[]")

    invoke("", "user", LOADING_LOG_SCHEMA, ENABLED_CONFIG, model="small-model", temperature=0.9)

    kwargs = mock_groq_cls.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "user"}]
    assert kwargs["model"] == "small-model"
    assert kwargs["temperature"] == 0.9


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_makes_exactly_one_call_without_retries(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.side_effect = groq.APIConnectionError(request=GROQ_REQUEST)

    with pytest.raises(UpstreamError) as exc_info:
        invoke("s", "u", LOADING_LOG_SCHEMA, ENABLED_CONFIG)

    assert exc_info.value.details == "Model API unreachable"
    assert mock_groq_cls.return_value.chat.completions.create.call_count == 1
    assert mock_groq_cls.call_args.kwargs["max_retries"] == 0


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_maps_timeout(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.side_effect = groq.APITimeoutError(request=GROQ_REQUEST)

    with pytest.raises(UpstreamError) as exc_info:
        invoke("s", "u", LOADING_LOG_SCHEMA, ENABLED_CONFIG)

    assert exc_info.value.details == "Model API timed out"
    assert exc_info.value.status_code == 500


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_passes_through_upstream_status(mock_groq_cls):
    response = httpx.Response(503, request=GROQ_REQUEST)
    mock_groq_cls.return_value.chat.completions.create.side_effect = groq.APIStatusError(
        "Service unavailable", response=response, body=None
    )

    with pytest.raises(UpstreamError) as exc_info:
        invoke("s", "u", LOADING_LOG_SCHEMA, ENABLED_CONFIG)

    assert exc_info.value.status_code == 503
    assert exc_info.value.to_body() == {"error": "AI Processing Failed", "details": "Model API returned 503"}


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_empty_content_is_empty_text(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(None)

    assert invoke("s", "u", LOADING_LOG_SCHEMA, ENABLED_CONFIG) == ""


@patch("lunchbox.llm.groq_client.Groq")
def test_invoke_disabled(mock_groq_cls):
    with pytest.raises(ConfigurationError):
        invoke("s", "u", LOADING_LOG_SCHEMA, DISABLED_CONFIG)
    with pytest.raises(ConfigurationError):
        invoke("s", "u", LOADING_LOG_SCHEMA, NO_KEY_CONFIG)

    mock_groq_cls.assert_not_called()
