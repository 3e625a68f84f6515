"""Service configuration for the GitHub App side of the review bot.

Values come from the process environment and the ``.env`` file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    github_app_id: Optional[str] = Field(default=None)
    github_app_private_key: Optional[str] = Field(default=None)
    github_app_private_key_path: Optional[str] = Field(default=None)
    github_webhook_secret: Optional[str] = Field(default=None)
    github_app_name: str = Field(default="ai-code-review-bot")
    github_api_url: str = Field(default="https://api.github.com")
    github_http_timeout: float = Field(default=30.0)
    installation_cache_ttl_seconds: int = Field(default=24 * 60 * 60)
    max_file_chars: int = Field(default=1000)
    log_level: str = Field(default="INFO")

    # Firestore: service-account JSON text or a path to it; empty means ADC
    service_file_loc: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)

    def load_private_key(self) -> Optional[str]:
        """
        Return the PEM private key text.

        ``GITHUB_APP_PRIVATE_KEY`` wins over ``GITHUB_APP_PRIVATE_KEY_PATH``.
        Single-line env values with literal ``\\n`` sequences are expanded.
        """
        if self.github_app_private_key:
            return self.github_app_private_key.replace("\\n", "\n")
        if self.github_app_private_key_path:
            return Path(self.github_app_private_key_path).read_text(encoding="utf-8")
        return None


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
