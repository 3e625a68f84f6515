"""Text-generation configuration (provider selection, models, credentials)."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    ai_provider: str = Field(default="openai")

    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4")

    openrouter_api_key: Optional[str] = Field(default=None)
    openrouter_model: str = Field(default="openai/gpt-4o-mini")

    ollama_url: str = Field(default="http://localhost:11434/v1")
    ollama_model: str = Field(default="codellama")

    huggingface_api_key: Optional[str] = Field(default=None)
    huggingface_model: str = Field(default="deepseek-ai/DeepSeek-R1")

    llm_temperature: float = Field(default=0.3)
    llm_max_tokens: int = Field(default=2000)
    llm_timeout: float = Field(default=180.0)

    enable_logfire: bool = Field(default=False)
    logfire_token: Optional[str] = Field(default=None)

    @property
    def model_name(self) -> str:
        """Model identifier for the active provider."""
        return {
            "openrouter": self.openrouter_model,
            "ollama": self.ollama_model,
            "huggingface": self.huggingface_model,
        }.get(self.ai_provider.lower(), self.openai_model)


@lru_cache
def get_agent_config() -> AgentConfig:
    return AgentConfig()
