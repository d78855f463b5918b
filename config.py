"""Configuration settings for the Project Document Factory."""

# Load .env into os.environ so provider fallbacks (e.g. OPENAI_API_KEY) work
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """Global settings for the document factory.

    Settings can be overridden via environment variables with DOC_FACTORY_ prefix.
    Example: DOC_FACTORY_MAX_CONCURRENT=5
    """

    # Provider / model
    default_provider: str = Field(
        default="openai",
        description="LLM provider used when none is requested"
    )
    default_model: Optional[str] = Field(
        default=None,
        description="Model override; None uses the provider's default"
    )
    rate_limited_providers: List[str] = Field(
        default_factory=lambda: ["deepseek"],
        description="Providers whose documents are generated strictly sequentially"
    )

    # Task queue
    max_concurrent: int = Field(
        default=3,
        ge=1,
        description="Maximum documents generating at the same time"
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Retries after the first attempt for each document (3 attempts total)"
    )
    retry_base_delay_ms: int = Field(
        default=1000,
        description="First retry delay; doubles on each further retry"
    )
    retry_max_delay_ms: int = Field(
        default=5000,
        description="Cap on the per-document retry delay"
    )

    # Cache
    use_cache: bool = Field(
        default=True,
        description="Serve repeated requests from the generation cache"
    )
    cache_max_size: int = Field(
        default=50,
        ge=1,
        description="Maximum cached document sets"
    )
    cache_ttl_minutes: float = Field(
        default=60,
        gt=0,
        description="Minutes a cached document set stays visible"
    )
    cache_sweep_interval_seconds: float = Field(
        default=300,
        gt=0,
        description="Seconds between background sweeps of expired cache entries"
    )

    # Generation
    enable_research: bool = Field(
        default=True,
        description="Generate research documents first and feed their context into later prompts"
    )
    max_tokens_per_document: int = Field(
        default=4000,
        description="Token budget for documents without their own budget"
    )
    document_timeout_seconds: float = Field(
        default=180,
        description="Timeout for documents without their own timeout"
    )
    sectioned_timeout_seconds: float = Field(
        default=300,
        description="Timeout for a whole sectioned fallback generation"
    )

    # Token pricing (per 1M tokens) - used when the provider reports no cost
    input_token_cost_per_million: float = Field(
        default=0.15,
        description="Cost per 1M input tokens"
    )
    output_token_cost_per_million: float = Field(
        default=0.60,
        description="Cost per 1M output tokens"
    )

    # Paths
    cheat_sheets_dir: str = Field(
        default="",
        description="Methodology cheat sheets directory (empty uses the bundled sheets)"
    )
    mapping_store_dir: str = Field(
        default="./workspace/mappings",
        description="Directory for persisted PII mapping tables"
    )
    output_dir: str = Field(
        default="./outputs",
        description="Generated documents directory"
    )

    # API settings (env: DOC_FACTORY_<KEY> or standard env var)
    anthropic_api_key: str = Field(
        default="",
        description="Anthropic API key (env: DOC_FACTORY_ANTHROPIC_API_KEY)",
    )
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (env: DOC_FACTORY_OPENAI_API_KEY)",
    )
    google_api_key: str = Field(
        default="",
        description="Google/Gemini API key (env: DOC_FACTORY_GOOGLE_API_KEY)",
    )
    deepseek_api_key: str = Field(
        default="",
        description="Deepseek API key (env: DOC_FACTORY_DEEPSEEK_API_KEY)",
    )

    model_config = {
        "env_prefix": "DOC_FACTORY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # ignore extra env vars (e.g. OPENAI_API_KEY) not in schema
    }

    def get_output_path(self) -> Path:
        """Get output path as Path object."""
        return Path(self.output_dir)

    def get_cheat_sheets_path(self) -> Path:
        """Get cheat sheets path, falling back to the sheets shipped with the librarian."""
        if self.cheat_sheets_dir:
            return Path(self.cheat_sheets_dir)
        return Path(__file__).parent / "librarian" / "cheat_sheets"

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for given token usage."""
        input_cost = (input_tokens / 1_000_000) * self.input_token_cost_per_million
        output_cost = (output_tokens / 1_000_000) * self.output_token_cost_per_million
        return input_cost + output_cost


class GenerationConfig(BaseModel):
    """Explicit configuration handed to one GenerationOrchestrator."""

    provider: str = "openai"
    model: Optional[str] = None
    max_concurrent: int = Field(default=3, ge=1)
    max_retries: int = Field(default=2, ge=0)
    cache_max_size: int = Field(default=50, ge=1)
    cache_ttl_minutes: float = Field(default=60, gt=0)
    use_cache: bool = True

    @classmethod
    def from_settings(cls, **overrides) -> "GenerationConfig":
        """Build a config from global settings, applying non-None overrides."""
        values = {
            "provider": settings.default_provider,
            "model": settings.default_model,
            "max_concurrent": settings.max_concurrent,
            "max_retries": settings.max_retries,
            "cache_max_size": settings.cache_max_size,
            "cache_ttl_minutes": settings.cache_ttl_minutes,
            "use_cache": settings.use_cache,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# Methodology-to-cheat-sheet mapping
METHODOLOGY_CHEAT_SHEETS: Dict[str, List[str]] = {
    "agile": ["agile_methodology.md"],
    "prince2": ["prince2_methodology.md"],
    "hybrid": ["agile_methodology.md", "prince2_methodology.md"],
}


# Create singleton instance
settings = Settings()
