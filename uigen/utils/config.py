"""Service configuration definition."""

from pydantic_settings import BaseSettings


class ServiceConfig(BaseSettings):
    """
    Defines the configuration for the chat service, loaded from environment
    variables or a .env file.
    """

    # Host for the HTTP server to bind to. Defaults to 0.0.0.0 for accessibility.
    HOST: str = "0.0.0.0"
    # Port for the HTTP server to listen on.
    PORT: int = 8660
    LOG_LEVEL: str = "INFO"

    # Without a key the deterministic fallback backend is used.
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-haiku-4-5"
    ANTHROPIC_BASE_URL: str | None = None
    ANTHROPIC_TIMEOUT: float = 120.0

    # Model/tool round trips per run, for the real and the fallback backend.
    MAX_STEPS: int = 40
    FALLBACK_MAX_STEPS: int = 4
    # Output tokens the model may produce over a whole run.
    MAX_OUTPUT_TOKENS: int = 10_000
    # Delay between streamed words of the fallback backend, in seconds.
    FALLBACK_CHUNK_DELAY: float = 0.0

    @property
    def has_api_key(self) -> bool:
        return bool(self.ANTHROPIC_API_KEY and self.ANTHROPIC_API_KEY.strip())

    class Config:
        """Pydantic configuration settings."""

        # We do not specify env_file here.
        # Environment loading is handled explicitly in main.py via load_dotenv
        # to ensure the correct .env file is used.
        extra = "ignore"
