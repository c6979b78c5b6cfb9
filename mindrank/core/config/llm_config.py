"""
LLM configuration for MindRank.

The LLM is optional: classifier escalation, query planning, complexity
scoring, synthesis and compression all degrade to deterministic paths when
no provider is configured.

Environment Variables:
    MINDRANK_LLM_API_KEY=sk-...
    MINDRANK_LLM_MODEL=gpt-4o-mini
    MINDRANK_LLM_BASE_URL=https://api.openai.com/v1
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """OpenAI-compatible LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MINDRANK_LLM_",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    model: str = Field(default="gpt-4o-mini", description="Chat model name")
    api_key: SecretStr | None = Field(default=None, description="API key for authentication")
    base_url: str | None = Field(default=None, description="Base URL for the chat API")
    timeout: int = Field(default=60, ge=1, description="Request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retry attempts for failed requests")

    @field_validator("base_url")
    def validate_base_url(cls, v: str | None) -> str | None:  # noqa: N805
        """Validate and normalize base URL."""
        if v is None:
            return v

        v = v.rstrip("/")
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    def is_configured(self) -> bool:
        """Whether enough is set to build a provider."""
        return self.api_key is not None or self.base_url is not None
