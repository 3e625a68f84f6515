"""Text-generation backends for the reviewer, built on pydantic-ai."""

import logging
import os
from typing import Any, Protocol

from pydantic_ai import Agent
from pydantic_ai.settings import ModelSettings

from reviewagent.config import AgentConfig
from reviewagent.models.review_schemas import ReviewResult
from reviewagent.prompts import SYSTEM_PROMPT, ReviewFile, build_review_prompt
from reviewagent.response_parser import parse_review_response

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "openrouter", "ollama", "huggingface")


class TextGenerator(Protocol):
    """Anything that turns a prompt into raw text."""

    name: str
    model_name: str

    async def generate(self, prompt: str) -> str:
        ...


def _build_model(config: AgentConfig, provider: str) -> Any:
    """Map the configured provider onto a pydantic-ai model (string or instance)."""
    if provider == "openrouter":
        if config.openrouter_api_key:
            os.environ.setdefault("OPENROUTER_API_KEY", config.openrouter_api_key)
        return f"openrouter:{config.openrouter_model}"

    if provider == "huggingface":
        if config.huggingface_api_key:
            os.environ.setdefault("HF_TOKEN", config.huggingface_api_key)
        return f"huggingface:{config.huggingface_model}"

    if provider == "ollama":
        from pydantic_ai.models.openai import OpenAIChatModel
        from pydantic_ai.providers.ollama import OllamaProvider

        return OpenAIChatModel(
            config.ollama_model,
            provider=OllamaProvider(base_url=config.ollama_url),
        )

    if config.openai_api_key:
        os.environ.setdefault("OPENAI_API_KEY", config.openai_api_key)
    return f"openai:{config.openai_model}"


class PydanticAIGenerator:
    """Plain-text pydantic-ai agent; the provider is chosen by ``AI_PROVIDER``."""

    def __init__(self, config: AgentConfig):
        provider = config.ai_provider.lower()
        if provider not in SUPPORTED_PROVIDERS:
            logger.warning(f"Unknown AI_PROVIDER '{config.ai_provider}', falling back to openai")
            provider = "openai"

        self.name = provider
        self.model_name = config.model_name
        self._agent = Agent(
            _build_model(config, provider),
            system_prompt=SYSTEM_PROMPT,
            output_type=str,
            model_settings=ModelSettings(
                max_tokens=config.llm_max_tokens,
                temperature=config.llm_temperature,
                timeout=config.llm_timeout,
            ),
            name="reviewer",
        )

        if config.enable_logfire and config.logfire_token:
            import logfire

            logfire.configure(token=config.logfire_token)
            logfire.instrument_pydantic_ai(self._agent)

    async def generate(self, prompt: str) -> str:
        result = await self._agent.run(prompt)
        return result.output


async def generate_code_review(
    generator: TextGenerator,
    repository: str,
    pr_number: int,
    title: str,
    description: str | None,
    files: list[ReviewFile],
    max_file_chars: int = 1000,
) -> ReviewResult:
    """
    Run one review: build the prompt, call the backend, parse the output.

    Backend failures propagate; parse failures become the fallback result.
    """
    prompt = build_review_prompt(
        repository, pr_number, title, description, files, max_file_chars=max_file_chars
    )
    logger.info(
        f"Requesting review for {repository}#{pr_number} from {generator.name} "
        f"({generator.model_name}), {len(files)} files, {len(prompt)} prompt chars"
    )
    raw = await generator.generate(prompt)
    review = parse_review_response(raw)
    logger.info(
        f"Review parsed for {repository}#{pr_number}: score={review.score}, "
        f"{len(review.issues)} issues, {len(review.suggestions)} suggestions"
    )
    return review
