#!/usr/bin/env python3
"""
Tests for YAML configuration loading and validation.
"""

import pytest
import yaml

from deepcli.chat_service import ChatService
from deepcli.config import Configuration, validate_temperature
from deepcli.continuation import DEFAULT_OPEN_ENDINGS, TruncationPolicy


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Keep a developer's .env file out of the tests."""
    monkeypatch.setattr(Configuration, "load_env", staticmethod(lambda: None))


@pytest.fixture
def default_config() -> Configuration:
    return Configuration()


@pytest.fixture
def write_config(tmp_path):
    def write(data) -> Configuration:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
        return Configuration(str(path))
    return write


@pytest.fixture
def base_data(default_config) -> dict:
    return yaml.safe_load(yaml.safe_dump(default_config.get_config_dict()))


class TestBundledConfig:
    """The config.yaml shipped with the package."""

    def test_model_aliases(self, default_config):
        assert default_config.get_model_spec("r1").name == "deepseek-r1"
        assert default_config.get_model_spec("chat").name == "deepseek-chat"

    def test_invalid_model_alias(self, default_config):
        with pytest.raises(ValueError, match="Invalid model 'gpt'"):
            default_config.get_model_spec("gpt")

    def test_system_prompts(self, default_config):
        assert "JSON" not in default_config.get_system_prompt()
        assert "JSON" in default_config.get_system_prompt(json_mode=True)

    def test_llm_config(self, default_config):
        llm_config = default_config.get_llm_config()
        assert llm_config["base_url"].startswith("https://")
        assert default_config.get_http_client_config()["read_timeout"] > 0

    def test_continuation_defaults(self, default_config):
        continuation = default_config.get_continuation_config()
        assert continuation["max_iterations"] == 5
        assert continuation["continue_prompt"] == "please continue"
        assert default_config.get_truncation_policy() == TruncationPolicy()

    def test_logging_level(self, default_config):
        assert default_config.get_logging_config()["level"] == "WARNING"


class TestApiKey:
    """API key resolution from the environment."""

    def test_missing_key(self, default_config, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        with pytest.raises(ValueError, match="DEEPSEEK_API_KEY"):
            default_config.llm_api_key

    def test_key_present(self, default_config, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
        assert default_config.llm_api_key == "sk-test"

    def test_unknown_provider(self, write_config, base_data):
        base_data["llm"]["active"] = "mystery"
        with pytest.raises(ValueError, match="Unknown provider"):
            write_config(base_data).llm_api_key


class TestValidation:
    """Invalid configuration is rejected before anything runs."""

    def test_non_mapping_file(self, write_config):
        with pytest.raises(ValueError, match="YAML dict"):
            write_config(["not", "a", "mapping"])

    def test_missing_read_timeout(self, write_config, base_data):
        del base_data["llm"]["providers"]["dashscope"]["http_client"]["read_timeout"]
        with pytest.raises(ValueError, match="read_timeout"):
            write_config(base_data).get_http_client_config()

    def test_null_read_timeout_allowed(self, write_config, base_data):
        base_data["llm"]["providers"]["dashscope"]["http_client"]["read_timeout"] = None
        assert write_config(base_data).get_http_client_config()["read_timeout"] is None

    def test_negative_max_iterations(self, write_config, base_data):
        base_data["chat"]["service"]["continuation"]["max_iterations"] = -1
        with pytest.raises(ValueError, match="max_iterations"):
            write_config(base_data).get_continuation_config()

    def test_missing_continue_prompt(self, write_config, base_data):
        del base_data["chat"]["service"]["continuation"]["continue_prompt"]
        with pytest.raises(ValueError, match="continue_prompt"):
            write_config(base_data).get_continuation_config()

    def test_model_limits(self, write_config, base_data):
        base_data["models"]["chat"]["max_input_tokens"] = 0
        with pytest.raises(ValueError, match="max_input_tokens"):
            write_config(base_data).get_model_spec("chat")

    def test_truncation_overrides(self, write_config, base_data):
        continuation = base_data["chat"]["service"]["continuation"]
        continuation["sentence_endings"] = [".", "!", "?"]
        continuation["length_threshold"] = 40

        policy = write_config(base_data).get_truncation_policy()

        assert policy.sentence_endings == (".", "!", "?")
        assert policy.length_threshold == 40
        assert policy.open_endings == DEFAULT_OPEN_ENDINGS


@pytest.mark.parametrize("value", [0.0, 1.0, 2.0])
def test_temperature_in_range(value):
    assert validate_temperature(value) == value


@pytest.mark.parametrize("value", [-0.1, 2.1])
def test_temperature_out_of_range(value):
    with pytest.raises(ValueError, match="between"):
        validate_temperature(value)


def test_service_from_configuration(default_config):
    service = ChatService.from_configuration(
        default_config, object(), "chat", temperature=0.3, json_mode=True
    )

    assert service.model.name == "deepseek-chat"
    assert service.temperature == 0.3
    assert service.max_continuations == 5
    assert "JSON" in service.conversation.system_prompt
    assert service.truncation_policy == TruncationPolicy()
