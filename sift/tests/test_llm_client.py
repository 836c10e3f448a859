"""Tests for LLMClient provider abstraction."""

import logging
from unittest.mock import MagicMock

import pytest

from sift.common.config import LLMConfig
from sift.common.llm_client import LLMClient, MediaPart


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["google", "anthropic", "openai"])
    def test_missing_key_logs_info(self, provider, caplog):
        with caplog.at_level(logging.INFO, logger="sift.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sift.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_picks_provider_model(self):
        cfg = LLMConfig(provider="openai", openai_model="gpt-test")
        client = LLMClient.from_config(cfg)
        assert client.provider == "openai"
        assert client.model == "gpt-test"
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_media_and_system(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        client._client = MagicMock()
        client._client.messages.create.return_value.content = [MagicMock(text="  {\"ok\": true} ")]

        out = client.generate(
            "extract",
            system="be precise",
            media=[MediaPart(b"img", "image/png"), MediaPart(b"doc", "application/pdf")],
        )

        assert out == '{"ok": true}'
        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "be precise"
        content = kwargs["messages"][0]["content"]
        assert [part["type"] for part in content] == ["image", "document", "text"]
        assert content[0]["source"]["data"] == "aW1n"

    def test_openai_json_mode(self):
        client = LLMClient(provider="openai", model="gpt-test")
        client._client = MagicMock()
        client._client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content="{}"))
        ]

        assert client.generate("extract", system="sys", json_output=True) == "{}"
        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_google_caches_model_per_system_prompt(self):
        client = LLMClient(provider="google", model="gemini-test")
        client._client = MagicMock()
        client._google_models = {}
        model = client._client.GenerativeModel.return_value
        model.generate_content.return_value.text = "done\n"

        assert client.generate("a", system="s", json_output=True) == "done"
        client.generate("b", system="s", json_output=True)

        client._client.GenerativeModel.assert_called_once_with(model_name="gemini-test", system_instruction="s")
        config = model.generate_content.call_args.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
