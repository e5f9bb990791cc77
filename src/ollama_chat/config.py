"""Application configuration."""

import os
from dataclasses import dataclass

import dotenv

dotenv.load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class AppSettings:
    """Main application settings with environment variable overrides."""

    # Ollama
    ollama_url: str = "http://localhost:11434/api/chat"
    model_name: str = "llama2-uncensored:7b-chat"
    request_timeout: float = 300.0
    stream: bool = True

    # Logging
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            ollama_url=os.getenv("OLLAMA_URL", cls.ollama_url),
            model_name=os.getenv("MODEL_NAME", cls.model_name),
            request_timeout=float(os.getenv("OLLAMA_TIMEOUT", cls.request_timeout)),
            stream=_env_bool("OLLAMA_STREAM", cls.stream),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )


settings = AppSettings.from_env()
