"""Config Port - interface for configuration access."""

from pydantic import BaseModel


class LLMConfig(BaseModel):
    """Generation backend selection."""

    provider: str = "ollama"  # "ollama" | "lm_studio" | "none" (offline scripted mode)
    model: str = "qwen2.5:7b"

    @property
    def enabled(self) -> bool:
        return self.provider not in ("", "none", "mock")


class OllamaConfig(BaseModel):
    """Ollama connection configuration."""

    host: str = "http://localhost:11434"
    timeout: int = 120
    # Optional: None = use model defaults.
    num_ctx: int | None = None
    num_predict: int | None = None


class OpenAICompatibleConfig(BaseModel):
    """LM Studio, vLLM, LocalAI - OpenAI-compatible API."""

    base_url: str = "http://localhost:1234/v1"
    api_key: str = ""
    timeout: int = 120
    max_tokens: int | None = None


class GenerationConfig(BaseModel):
    """Sampling and offline-mode settings."""

    temperature: float = 0.7
    classify_temperature: float = 0.1
    mock_delay_seconds: float = 1.0  # simulated latency when no backend is configured


class PersistenceConfig(BaseModel):
    """Persistence settings."""

    output_dir: str = "output"


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100
    cors_origins: list[str] = ["http://localhost:5173"]


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    llm: LLMConfig = LLMConfig()
    ollama: OllamaConfig = OllamaConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    generation: GenerationConfig = GenerationConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3

