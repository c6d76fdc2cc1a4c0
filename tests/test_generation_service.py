"""Tests for GenerationService."""

import os
from unittest.mock import Mock, patch

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError

from answerdesk import (
    EmptyInputError,
    GenerationError,
    GenerationService,
    UpstreamTimeoutError,
)
from answerdesk.config import config

from tests.conftest import TestConstants, create_mock_chat_response

_REQUEST = httpx.Request("POST", "https://example.test/chat/completions")


def test_init_defaults_from_config():
    with patch.dict(os.environ, {"OPENAI_API_KEY": "env-key"}):
        service = GenerationService()

    assert service.model == config.CHAT_MODEL
    assert service.client.api_key == "env-key"
    assert service.client.max_retries == config.GENERATION_MAX_RETRIES
    assert service.client.timeout == config.GENERATION_TIMEOUT


def test_init_with_injected_client():
    client = Mock()
    service = GenerationService(client=client, model="custom-model")

    assert service.client is client
    assert service.model == "custom-model"


def test_generate_sends_single_user_message(generation_service, generation_chat_mock):
    generation_chat_mock.return_value = create_mock_chat_response(
        '  {"answer": "Xin chào", "resource_id": []}\n'
    )

    output = generation_service.generate("  Prompt text  ")

    assert output == '{"answer": "Xin chào", "resource_id": []}'
    generation_chat_mock.assert_called_once_with(
        model=TestConstants.TEST_CHAT_MODEL,
        messages=[{"role": "user", "content": "Prompt text"}],
        max_tokens=config.CHAT_MAX_TOKENS,
        temperature=config.CHAT_TEMPERATURE,
        top_p=config.CHAT_TOP_P,
    )


def test_generate_none_content_returns_empty(generation_service, generation_chat_mock):
    generation_chat_mock.return_value = create_mock_chat_response(None)
    assert generation_service.generate("prompt") == ""


@pytest.mark.parametrize("prompt", ["", "   ", None])
def test_generate_rejects_blank_prompt(
    generation_service, generation_chat_mock, prompt
):
    with pytest.raises(EmptyInputError, match="Prompt is required"):
        generation_service.generate(prompt)
    generation_chat_mock.assert_not_called()


def test_generate_status_error(generation_service, generation_chat_mock):
    response = httpx.Response(503, request=_REQUEST)
    generation_chat_mock.side_effect = APIStatusError(
        "model overloaded", response=response, body=None
    )

    with pytest.raises(GenerationError) as exc_info:
        generation_service.generate("prompt")

    error = exc_info.value
    assert error.message == "Failed to generate text"
    assert error.upstream_status == 503
    assert error.upstream_message == "model overloaded"
    assert error.to_dict() == {
        "error": "Failed to generate text",
        "status": 503,
        "message": "model overloaded",
    }


def test_generate_connection_error(generation_service, generation_chat_mock):
    generation_chat_mock.side_effect = APIConnectionError(request=_REQUEST)

    with pytest.raises(GenerationError, match="unreachable"):
        generation_service.generate("prompt")


def test_generate_timeout(generation_service, generation_chat_mock):
    generation_chat_mock.side_effect = APITimeoutError(request=_REQUEST)

    with pytest.raises(UpstreamTimeoutError) as exc_info:
        generation_service.generate("prompt")

    assert exc_info.value.status_code == 504


def test_generate_malformed_response(generation_service, generation_chat_mock):
    generation_chat_mock.return_value = Mock(choices=[])

    with pytest.raises(GenerationError, match="Malformed"):
        generation_service.generate("prompt")
