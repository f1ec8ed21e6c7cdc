from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider credentials (a request may also carry its own key)
    gemini_api_key: str = ""
    openai_api_key: str = ""
    groq_api_key: str = ""
    anthropic_api_key: str = ""
    cohere_api_key: str = ""
    mistral_api_key: str = ""
    perplexity_api_key: str = ""
    together_api_key: str = ""
    openrouter_api_key: str = ""

    # Models per provider
    default_provider: str = "Gemini"
    gemini_model: str = "gemini-3-flash-preview"
    gemini_ontology_model: str = "gemini-3.1-pro-preview"  # used when ontology lookup is enabled
    openai_model: str = "gpt-4o"
    groq_model: str = "llama-3.1-8b-instant"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    cohere_model: str = "command-r-plus"
    mistral_model: str = "mistral-large-latest"
    perplexity_model: str = "sonar-pro"
    together_model: str = "meta-llama/Llama-3.3-70B-Instruct-Turbo"
    openrouter_model: str = "openai/gpt-4o-mini"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    llm_max_tokens: int = 4096

    # Batch resolution
    resolution_concurrency: int = 3
    resolution_window_delay_ms: int = 800
    resolution_timeout_seconds: float = 0.0  # 0 disables the per-entity timeout

    # Persistence
    session_dir: str = ".cache/sessions"

    # App
    app_version: str = "4.5.0"
    cors_origins: str = "http://localhost:3000"
    log_dir: str = "logs"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def window_delay_seconds(self) -> float:
        return max(self.resolution_window_delay_ms, 0) / 1000


settings = Settings()
