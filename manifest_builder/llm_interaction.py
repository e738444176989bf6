# manifest_builder/llm_interaction.py
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)
from rich.console import Console
from rich.json import JSON as RichJSON

from manifest_builder.errors import ProviderError

if TYPE_CHECKING:
    from manifest_builder.config_utils import BuilderConfig


class TextGenerator(ABC):
    """The one capability the pipeline needs from a provider: prompt in, text out."""

    name: str = ""

    @abstractmethod
    async def generate(self, system_instruction: str, prompt: str) -> str:
        """Return the model's raw reply. Raises ProviderError on any provider failure."""


class LiteLLMGenerator(TextGenerator):
    """
    Calls a hosted model through litellm. Subclasses only change the request
    shape. No retries: litellm's are disabled and fallback is the pipeline's job.
    """

    provider_prefix: str = ""

    def __init__(self, api_key: str, model: str, temperature: float = 0.2, debug: bool = False):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.debug = debug

    @property
    def model_name(self) -> str:
        # Identifiers that already carry a provider prefix are passed through.
        if "/" in self.model:
            return self.model
        return f"{self.provider_prefix}/{self.model}"

    def build_completion_params(self, system_instruction: str, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "api_key": self.api_key,
            "max_retries": 0,
            "stream": False,
        }

    def _print_debug_params(self, completion_params: Dict[str, Any]):
        debug_console = Console(stderr=True)
        debug_console.print(f"[dim bold red]LLM DEBUG: Request Params ({self.name}, {self.model_name}):[/dim bold red]")
        debug_params_log = completion_params.copy()
        debug_params_log["api_key"] = "***"
        debug_params_log["messages"] = [
            {"role": msg["role"], "content": f"<{len(msg['content'])} chars>"}
            for msg in completion_params["messages"]
        ]
        debug_console.print(RichJSON(json.dumps(debug_params_log, indent=2, default=str)))

    async def generate(self, system_instruction: str, prompt: str) -> str:
        completion_params = self.build_completion_params(system_instruction, prompt)
        if self.debug:
            self._print_debug_params(completion_params)

        try:
            response = await acompletion(**completion_params)
        except AuthenticationError as e:
            raise ProviderError(self.name, f"authentication failed: {e}") from e
        except RateLimitError as e:
            raise ProviderError(self.name, f"rate limited: {e}") from e
        except (Timeout, APIConnectionError, ServiceUnavailableError) as e:
            raise ProviderError(self.name, f"transport error: {e}") from e
        except APIError as e:
            raise ProviderError(self.name, f"API error: {e}") from e
        except Exception as e:
            # Anything else raised by the SDK is still a provider failure.
            raise ProviderError(self.name, f"unexpected error: {e}") from e

        return extract_response_text(response, self.name)

    @classmethod
    @abstractmethod
    def from_config(cls, config: 'BuilderConfig') -> 'LiteLLMGenerator':
        ...


class OpenAIGenerator(LiteLLMGenerator):
    name = "openai"
    provider_prefix = "openai"

    @classmethod
    def from_config(cls, config: 'BuilderConfig') -> 'OpenAIGenerator':
        return cls(
            api_key=config.openai_api_key.get_secret_value(),
            model=config.openai_model,
            temperature=config.temperature,
            debug=config.debug,
        )


class AnthropicGenerator(LiteLLMGenerator):
    name = "anthropic"
    provider_prefix = "anthropic"

    def __init__(self, api_key: str, model: str, temperature: float = 0.2, debug: bool = False, max_tokens: int = 4000):
        super().__init__(api_key, model, temperature, debug)
        self.max_tokens = max_tokens

    def build_completion_params(self, system_instruction: str, prompt: str) -> Dict[str, Any]:
        completion_params = super().build_completion_params(system_instruction, prompt)
        completion_params["max_tokens"] = self.max_tokens
        return completion_params

    @classmethod
    def from_config(cls, config: 'BuilderConfig') -> 'AnthropicGenerator':
        return cls(
            api_key=config.anthropic_api_key.get_secret_value(),
            model=config.anthropic_model,
            temperature=config.temperature,
            debug=config.debug,
            max_tokens=config.anthropic_max_tokens,
        )


GENERATOR_CLASSES = {
    OpenAIGenerator.name: OpenAIGenerator,
    AnthropicGenerator.name: AnthropicGenerator,
}


def extract_response_text(response: Any, provider: str) -> str:
    """Pulls the assistant text out of a litellm ModelResponse. Empty content yields ''."""
    try:
        content: Optional[str] = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise ProviderError(provider, f"response has no message content: {e}") from e
    return content or ""


def build_generators(config: 'BuilderConfig') -> List[TextGenerator]:
    """One generator per provider holding a credential, in priority order."""
    return [GENERATOR_CLASSES[name].from_config(config) for name in config.configured_providers]
