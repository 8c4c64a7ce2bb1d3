"""Pydantic models for storechat.yaml configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_DATA_DIR = Path.home() / ".storechat"

PROVIDERS = ("openai", "deepseek", "groq", "openrouter", "google")


class ModelConfig(BaseModel):
    """Default chat model selection.

    API keys are intentionally absent: every request carries its own key.
    """

    provider: Literal["openai", "deepseek", "groq", "openrouter", "google"] = Field(
        default="google",
        description="Provider used when a request does not name one",
    )
    name: str = Field(default="gemini-2.5-flash", description="Default model name")
    temperature: float = Field(default=1.0, description="Sampling temperature", ge=0.0, le=2.0)
    timeout: int = Field(default=120, description="Provider request timeout in seconds", ge=1)


class AgentConfig(BaseModel):
    """Orchestrator configuration."""

    max_tool_rounds: int = Field(
        default=10,
        description="Maximum tool-call rounds per turn before a final answer is forced",
        ge=1,
        le=50,
    )
    approve_all_tools: bool = Field(
        default=False,
        description="Execute tool calls without asking the user for approval",
    )
    reject_duplicate_renders: bool = Field(
        default=True,
        description="Reject a second identical chart/table/cards render within one turn",
    )
    system_prompt: str | None = Field(
        default=None,
        description="Override for the built-in analyst system prompt",
    )


class TLSConfig(BaseModel):
    """TLS settings for the database connection.

    Applied only to the engine built from this config. Modes that skip
    certificate verification are refused unless ``allow_insecure`` is set.
    """

    mode: Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"] = Field(
        default="verify-full",
        description="libpq sslmode for PostgreSQL connections",
    )
    root_cert: str | None = Field(default=None, description="Path to a CA bundle")
    allow_insecure: bool = Field(
        default=False,
        description="Opt in to modes that do not verify the server certificate",
    )


class DatabaseConfig(BaseModel):
    """Checkpoint and metadata database configuration."""

    url: str = Field(
        default=f"sqlite:///{DEFAULT_DATA_DIR / 'storechat.db'}",
        description="SQLAlchemy URL (sqlite:/// or postgresql+psycopg://)",
    )
    pool_size: int = Field(default=5, description="Connection pool size (PostgreSQL)", ge=1)
    echo: bool = Field(default=False, description="Log emitted SQL")
    tls: TLSConfig = Field(default_factory=TLSConfig)


class SandboxConfig(BaseModel):
    """Code interpreter sandbox configuration."""

    timeout_seconds: float = Field(
        default=50.0,
        description="Wall-clock limit for one code interpreter run",
        gt=0,
    )


class WooCommerceConfig(BaseModel):
    """Store REST client configuration."""

    timeout: float = Field(default=30.0, description="HTTP timeout in seconds", gt=0)
    max_pages: int = Field(
        default=1000,
        description="Upper bound on pages followed by a fetch-all request",
        ge=1,
    )
    default_per_page: int = Field(default=100, description="Page size for fetch-all", ge=1, le=100)


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed by the CORS middleware",
    )


class ModelPricing(BaseModel):
    """Per-model prices in USD per million tokens."""

    input_price: float = Field(default=0.0, ge=0.0)
    output_price: float = Field(default=0.0, ge=0.0)


def _default_pricing() -> dict[str, ModelPricing]:
    return {
        "gemini-2.5-flash": ModelPricing(input_price=0.30, output_price=2.50),
        "gemini-2.5-pro": ModelPricing(input_price=1.25, output_price=10.0),
        "gpt-4o": ModelPricing(input_price=2.50, output_price=10.0),
        "gpt-4o-mini": ModelPricing(input_price=0.15, output_price=0.60),
        "gpt-4.1": ModelPricing(input_price=2.0, output_price=8.0),
        "gpt-4.1-mini": ModelPricing(input_price=0.40, output_price=1.60),
        "deepseek-chat": ModelPricing(input_price=0.27, output_price=1.10),
        "deepseek-reasoner": ModelPricing(input_price=0.55, output_price=2.19),
        "llama-3.3-70b-versatile": ModelPricing(input_price=0.59, output_price=0.79),
    }


class PluginsConfig(BaseModel):
    """Entry-point tool plugins."""

    enabled: bool = Field(default=False, description="Load tools from installed plugins")
    group: str = Field(default="storechat.tools", description="Entry point group to scan")
    blocked: list[str] = Field(default_factory=list, description="Plugin names to skip")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class StoreChatConfig(BaseModel):
    """Root configuration schema for storechat."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    woocommerce: WooCommerceConfig = Field(default_factory=WooCommerceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    pricing: dict[str, ModelPricing] = Field(
        default_factory=_default_pricing,
        description="Token prices used for per-thread cost accounting",
    )
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
