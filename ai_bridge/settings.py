# ai_bridge/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# This settings.py file is at <project>/ai_bridge/settings.py
# Two .parent calls get to the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

SUPPORTED_AI_PROVIDERS = ("anthropic", "openrouter", "openai", "perplexity")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "Salesforce AI Bridge"
    debug_mode: bool = False
    log_level: str = "INFO"

    # Language-model backend selection
    ai_provider: str = "openrouter"
    ai_request_timeout_seconds: float = 60.0

    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_api_base_url: str = "https://api.anthropic.com/v1"

    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "nousresearch/deepseek-r1t2-chimera:free"
    openrouter_app_name: str = "Salesforce-AI-Bridge"
    openrouter_site_url: str = "http://localhost:3001"
    openrouter_api_base_url: str = "https://openrouter.ai/api/v1"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-5-mini"
    openai_api_base_url: str = "https://api.openai.com/v1"

    perplexity_api_key: Optional[str] = None
    perplexity_model: str = "sonar"
    perplexity_api_base_url: str = "https://api.perplexity.ai"

    # Remote tool server
    mcp_server_url: Optional[str] = Field(
        default=None,
        description="JSON-RPC endpoint of the remote tool-execution server."
    )
    mcp_request_timeout_seconds: float = 30.0

    # HTTP surface
    # Comma-separated, e.g. ALLOWED_ORIGINS=https://a.example,https://b.example
    allowed_origins: str = "*"

    # Conversation store
    session_timeout_seconds: int = 1800

    # Salesforce identity and rate limiting
    require_salesforce_auth: bool = False
    salesforce_token_validation_ttl_seconds: int = 300
    salesforce_validation_timeout_seconds: float = 10.0
    user_rate_limit_per_minute: int = 10
    rate_limit_idle_cooldown_seconds: int = 300

    # Background sweeps (token cache, rate windows, sessions)
    sweep_interval_seconds: float = 60.0

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )

    @field_validator("ai_provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SUPPORTED_AI_PROVIDERS:
            raise ValueError(
                f"AI_PROVIDER must be one of {', '.join(SUPPORTED_AI_PROVIDERS)}; got '{value}'"
            )
        return normalized

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def validate_startup_requirements(self) -> None:
        """Fail fast when the tool server URL or the selected provider key is missing."""
        if not self.mcp_server_url:
            raise ValueError("MCP_SERVER_URL is required")
        api_key = getattr(self, f"{self.ai_provider}_api_key", None)
        if not api_key:
            raise ValueError(
                f"{self.ai_provider.upper()}_API_KEY is required when AI_PROVIDER={self.ai_provider}"
            )


# Initialize settings instance
settings = Settings()

logger.debug(
    f"SETTINGS.PY: ai_provider='{settings.ai_provider}', mcp_server_url='{settings.mcp_server_url}', "
    f"require_salesforce_auth={settings.require_salesforce_auth}, "
    f"{settings.ai_provider}_api_key={'********' if getattr(settings, settings.ai_provider + '_api_key') else 'None'}"
)
