"""Configuration management for the chat client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from deepcli.continuation import TruncationPolicy
from deepcli.llm.models import ModelSpec

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")
DEFAULT_PROVIDER = "dashscope"

# Environment variable holding the API key, per provider
PROVIDER_API_KEYS = {
    "dashscope": "DEEPSEEK_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


def validate_temperature(value: float) -> float:
    """Check a sampling temperature is within the accepted range.

    Raises:
        ValueError: If the temperature is outside 0.0-2.0.
    """
    if not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
        raise ValueError(
            f"Temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}"
        )
    return value


def _require(section: dict[str, Any], keys: list[str], where: str) -> None:
    missing = [key for key in keys if key not in section]
    if missing:
        raise ValueError(
            f"{where}.{missing[0]} must be explicitly configured in config.yaml"
        )


class Configuration:
    """YAML settings plus the API key from the environment (or a .env file)."""

    def __init__(self, config_path: str | None = None) -> None:
        self.load_env()
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._read_config_file()

    @staticmethod
    def load_env() -> None:
        """Pull variables from a .env file into the process environment."""
        load_dotenv()

    def _read_config_file(self) -> dict[str, Any]:
        with open(self.config_path, encoding="utf-8") as file:
            data = yaml.safe_load(file)
        if not isinstance(data, dict):
            raise ValueError(
                f"{self.config_path} must hold a YAML dict, got {type(data).__name__}"
            )
        return data

    @property
    def active_provider(self) -> str:
        return self._config.get("llm", {}).get("active", DEFAULT_PROVIDER)

    @property
    def llm_api_key(self) -> str:
        """API key for the active provider.

        Raises:
            ValueError: If the provider has no known key variable, or the
                variable is unset or empty.
        """
        provider = self.active_provider
        env_var = PROVIDER_API_KEYS.get(provider)
        if env_var is None:
            raise ValueError(f"Unknown provider '{provider}': no API key variable")

        api_key = os.getenv(env_var)
        if not api_key:
            raise ValueError(
                f"{env_var} environment variable not set for provider '{provider}'"
            )
        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        return self._config

    def get_llm_config(self) -> dict[str, Any]:
        """Settings block of the active provider (name, base_url, http_client)."""
        provider = self.active_provider
        providers = self._config.get("llm", {}).get("providers", {})
        if provider not in providers:
            raise ValueError(f"llm.providers has no entry for '{provider}'")
        return providers[provider]

    def get_http_client_config(self) -> dict[str, Any]:
        """Timeouts for the active provider's HTTP client, validated.

        Raises:
            ValueError: If a required timeout is missing or not positive.
        """
        http_config = self.get_llm_config().get("http_client", {})
        _require(
            http_config,
            ["connect_timeout", "read_timeout"],
            f"llm.providers.{self.active_provider}.http_client",
        )

        if http_config["connect_timeout"] <= 0:
            raise ValueError("http_client.connect_timeout must be positive")
        # A null read_timeout waits on the stream indefinitely
        read_timeout = http_config["read_timeout"]
        if read_timeout is not None and read_timeout <= 0:
            raise ValueError("http_client.read_timeout must be positive or null")

        return http_config

    def get_model_spec(self, alias: str) -> ModelSpec:
        """Resolve a model alias to its name and token limits.

        Raises:
            ValueError: If the alias is unknown or its limits are invalid.
        """
        models = self._config.get("models", {})
        if alias not in models:
            choices = ", ".join(f"'{name}'" for name in models)
            raise ValueError(f"Invalid model '{alias}'. Use one of: {choices}.")

        model_config = models[alias]
        _require(
            model_config,
            ["name", "max_input_tokens", "default_max_tokens"],
            f"models.{alias}",
        )
        for key in ["max_input_tokens", "default_max_tokens"]:
            if model_config[key] < 1:
                raise ValueError(f"models.{alias}.{key} must be at least 1")

        return ModelSpec(
            alias=alias,
            name=model_config["name"],
            max_input_tokens=model_config["max_input_tokens"],
            default_max_tokens=model_config["default_max_tokens"],
        )

    def get_system_prompt(self, json_mode: bool = False) -> str:
        """The system prompt, or its JSON-output variant."""
        prompts = self._config.get("prompts", {})
        key = "system_json" if json_mode else "system"
        _require(prompts, [key], "prompts")
        return prompts[key]

    def get_chat_service_config(self) -> dict[str, Any]:
        return self._config.get("chat", {}).get("service", {})

    def get_continuation_config(self) -> dict[str, Any]:
        """Continuation and summarization settings, validated.

        Raises:
            ValueError: If a required setting is missing or invalid.
        """
        continuation = self.get_chat_service_config().get("continuation", {})
        _require(
            continuation,
            ["max_iterations", "continue_prompt", "summary_prompt", "summary_prefix"],
            "chat.service.continuation",
        )

        max_iterations = continuation["max_iterations"]
        if not isinstance(max_iterations, int) or max_iterations < 0:
            raise ValueError("max_iterations must be a non-negative integer")
        if not continuation["continue_prompt"].strip():
            raise ValueError("continue_prompt must not be empty")

        return {**continuation}

    def get_truncation_policy(self) -> TruncationPolicy:
        """Build the truncation policy, applying any configured overrides."""
        continuation = self.get_continuation_config()
        overrides: dict[str, Any] = {}

        for key in ["open_endings", "sentence_endings"]:
            if key in continuation:
                overrides[key] = tuple(continuation[key])
        if "length_threshold" in continuation:
            threshold = continuation["length_threshold"]
            if threshold < 0:
                raise ValueError("length_threshold must be non-negative")
            overrides["length_threshold"] = threshold

        return TruncationPolicy(**overrides)

    def get_logging_config(self) -> dict[str, Any]:
        return self._config.get("logging", {})
