"""Tests for shared infrastructure: config, LLM client, structured decoding."""

import json
import logging

import pytest
from unittest.mock import Mock, patch


CONFIG_ENV_VARS = [
    "ALLOW_LIST", "FETCH_MAX_BYTES", "FETCH_CONCURRENCY", "CORS_ORIGINS",
    "GOOGLE_KEY", "GOOGLE_CX", "PORT", "SEARCH_TIMEOUT", "FETCH_TIMEOUT",
    "COMPANION_API_BASE", "COMPANION_CONTENT_DIR", "COMPANION_LLM_PROVIDER",
    "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "OPENAI_BASE_URL", "GOOGLE_API_KEY",
    "GEMINI_API_KEY", "ANTHROPIC_MODEL", "OPENAI_MODEL", "GOOGLE_MODEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("companion.common.config.CONFIG_PATH", tmp_path / "missing.json"):
        yield monkeypatch


class TestConfig:
    def test_defaults(self, clean_env):
        from companion.common.config import load_config

        cfg = load_config()

        assert cfg.gateway.allow_list == []
        assert cfg.gateway.max_fetch_bytes == 2_000_000
        assert cfg.gateway.max_concurrent_fetches == 2
        assert cfg.gateway.port == 8787
        assert cfg.gateway.cors_allow_all
        assert cfg.router.api_base == "http://127.0.0.1:8787"
        assert cfg.router.history_size == 6
        assert cfg.llm.provider == "openai"

    def test_env_overrides(self, clean_env):
        from companion.common.config import load_config

        clean_env.setenv("ALLOW_LIST", " WHO.int, health.gov.za ,, unicef.org")
        clean_env.setenv("FETCH_CONCURRENCY", "4")
        clean_env.setenv("CORS_ORIGINS", "http://localhost:5173, http://example.org")
        clean_env.setenv("COMPANION_API_BASE", "http://gateway:9000/")
        clean_env.setenv("COMPANION_LLM_PROVIDER", "anthropic")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant")

        cfg = load_config()

        assert cfg.gateway.allow_list == ["who.int", "health.gov.za", "unicef.org"]
        assert cfg.gateway.max_concurrent_fetches == 4
        assert cfg.gateway.cors_origins == ["http://localhost:5173", "http://example.org"]
        assert not cfg.gateway.cors_allow_all
        assert cfg.router.api_base == "http://gateway:9000"
        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.anthropic_api_key == "sk-ant"

    def test_invalid_number_falls_back(self, clean_env, caplog):
        from companion.common.config import load_config

        clean_env.setenv("FETCH_MAX_BYTES", "lots")
        with caplog.at_level(logging.WARNING, logger="companion.common.config"):
            cfg = load_config()

        assert cfg.gateway.max_fetch_bytes == 2_000_000
        assert "FETCH_MAX_BYTES" in caplog.text

    def test_file_then_env(self, clean_env, tmp_path):
        from companion.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "gateway": {"allow_list": ["who.int"], "port": 9999},
            "router": {"search_count": 5, "llm_routing": False},
            "llm": {"provider": "google", "google_model": "gemini-x"},
        }))
        clean_env.setenv("PORT", "8000")

        with patch("companion.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.gateway.allow_list == ["who.int"]
        assert cfg.gateway.port == 8000
        assert cfg.router.search_count == 5
        assert cfg.router.llm_routing is False
        assert cfg.llm.provider == "google"
        assert cfg.llm.google_model == "gemini-x"

    def test_empty_allow_list_env_overrides_file(self, clean_env, tmp_path):
        from companion.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"gateway": {"allow_list": ["who.int"]}}))
        clean_env.setenv("ALLOW_LIST", "")

        with patch("companion.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.gateway.allow_list == []

    def test_malformed_file_logs_warning(self, clean_env, tmp_path, caplog):
        from companion.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text("{broken")

        with patch("companion.common.config.CONFIG_PATH", config_file):
            with caplog.at_level(logging.WARNING, logger="companion.common.config"):
                cfg = load_config()

        assert cfg.gateway.port == 8787
        assert "Failed to load config file" in caplog.text


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        from companion.common.llm_client import LLMClient

        with caplog.at_level(logging.INFO, logger="companion.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        from companion.common.llm_client import LLMClient

        with caplog.at_level(logging.INFO, logger="companion.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_local_openai_server_needs_no_key(self):
        from companion.common.llm_client import LLMClient

        client = LLMClient(provider="openai", model="local-model", openai_base_url="http://127.0.0.1:1234/v1")
        assert client.is_available

    def test_unsupported_provider_logs_warning(self, caplog):
        from companion.common.llm_client import LLMClient

        with caplog.at_level(logging.WARNING, logger="companion.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_picks_provider_model(self):
        from companion.common.config import LLMConfig
        from companion.common.llm_client import LLMClient

        client = LLMClient.from_config(LLMConfig(provider="anthropic", anthropic_model="claude-x"))
        assert client.provider == "anthropic"
        assert client.model == "claude-x"


class TestLLMClientComplete:
    def test_complete_raises_when_unavailable(self):
        from companion.common.llm_client import LLMClient

        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.complete([{"role": "user", "content": "hi"}])

    def test_anthropic_system_prompt_is_split_out(self):
        from companion.common.llm_client import LLMClient

        client = LLMClient(provider="anthropic", model="claude-x")
        client._client = Mock()
        client._client.messages.create.return_value = Mock(content=[Mock(text="  hello  ")])

        out = client.complete(
            [{"role": "system", "content": "be kind"}, {"role": "user", "content": "hi"}],
            temperature=0.2,
        )

        assert out == "hello"
        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be kind"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["temperature"] == 0.2

    def test_openai_passes_messages_through(self):
        from companion.common.llm_client import LLMClient

        client = LLMClient(provider="openai", model="gpt-x")
        client._client = Mock()
        choice = Mock()
        choice.message.content = "answer"
        client._client.chat.completions.create.return_value = Mock(choices=[choice])
        messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]

        assert client.complete(messages, top_p=0.5, max_tokens=10) == "answer"
        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == messages
        assert kwargs["top_p"] == 0.5
        assert kwargs["max_tokens"] == 10


class TestParseLLMJson:
    def test_plain_json(self):
        from companion.common.llm_utils import parse_llm_json

        assert parse_llm_json('{"action": "basic_chat"}') == {"action": "basic_chat"}

    def test_code_fence(self):
        from companion.common.llm_utils import parse_llm_json

        raw = '```json\n{"action": "info_local"}\n```'
        assert parse_llm_json(raw) == {"action": "info_local"}

    def test_prose_wrapped(self):
        from companion.common.llm_utils import parse_llm_json

        raw = 'Sure! Here is the route: {"action": "info_search", "note": "a } in text"} hope that helps {'
        assert parse_llm_json(raw) == {"action": "info_search", "note": "a } in text"}

    def test_garbage_returns_empty(self):
        from companion.common.llm_utils import parse_llm_json

        assert parse_llm_json("no json here") == {}
        assert parse_llm_json("") == {}
        assert parse_llm_json("[1, 2]") == {}


class TestParseStructuredOrDefault:
    DEFAULTS = {"action": "basic_chat", "topic_hint": None, "needs_sources": False}

    def test_valid_fields_kept(self):
        from companion.common.llm_utils import parse_structured_or_default

        raw = '{"action": "info_local", "topic_hint": "breastfeeding", "needs_sources": true}'
        assert parse_structured_or_default(raw, self.DEFAULTS) == {
            "action": "info_local",
            "topic_hint": "breastfeeding",
            "needs_sources": True,
        }

    def test_wrong_types_fall_back(self):
        from companion.common.llm_utils import parse_structured_or_default

        raw = '{"action": 42, "needs_sources": "yes", "extra": 1}'
        assert parse_structured_or_default(raw, self.DEFAULTS) == self.DEFAULTS

    def test_unparseable_gives_defaults(self):
        from companion.common.llm_utils import parse_structured_or_default

        assert parse_structured_or_default("I think basic chat", self.DEFAULTS) == self.DEFAULTS

    def test_int_accepted_for_float(self):
        from companion.common.llm_utils import parse_structured_or_default

        assert parse_structured_or_default('{"confidence": 1}', {"confidence": 0.5}) == {"confidence": 1.0}
