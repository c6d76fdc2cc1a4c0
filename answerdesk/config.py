"""Configuration management for the AnswerDesk service."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class Config:
    """Application configuration loaded from environment variables."""

    # Provider Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get the provider API key from environment variables.

        ``OPENAI_API_KEY`` wins; ``GOOGLE_API_KEY`` is accepted so the
        Gemini key can be used as-is against the OpenAI-compatible endpoint.

        Returns:
            API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY") or os.getenv("GOOGLE_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL", GEMINI_OPENAI_BASE_URL)

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Embedding Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "gemini-embedding-001")
    EMBEDDING_DIMENSION: int = int(os.getenv("EMBEDDING_DIMENSION", "3072"))
    EMBEDDING_MAX_CHARS: int = int(os.getenv("EMBEDDING_MAX_CHARS", "9000"))
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "20"))
    EMBEDDING_MAX_RETRIES: int = int(os.getenv("EMBEDDING_MAX_RETRIES", "2"))

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gemini-2.5-flash")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "2048"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
    CHAT_TOP_P: float = float(os.getenv("CHAT_TOP_P", "0.95"))
    GENERATION_TIMEOUT: float = float(os.getenv("GENERATION_TIMEOUT", "60"))
    GENERATION_MAX_RETRIES: int = int(os.getenv("GENERATION_MAX_RETRIES", "2"))

    # Answer Pipeline Configuration
    RETRIEVAL_LIMIT: int = int(os.getenv("RETRIEVAL_LIMIT", "2"))
    HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "5"))
    SESSION_MAX_TURNS: int = int(os.getenv("SESSION_MAX_TURNS", "10"))
    PROMPT_MAX_CHARS: int = int(os.getenv("PROMPT_MAX_CHARS", "24000"))

    # Vector Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "faiss").lower()
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/knowledge.db")
    )
    VECTOR_STORE_DIR: Path = Path(os.getenv("VECTOR_STORE_DIR", "data/vectors"))
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )
    VECTOR_RAW_TOP_K_MULTIPLIER: int = int(
        os.getenv("VECTOR_RAW_TOP_K_MULTIPLIER", "2")
    )

    # Chat Session Configuration
    CHAT_HISTORY_PATH: Path = Path(
        os.getenv("CHAT_HISTORY_PATH", "data/itup-chat-history.json")
    )

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "AnswerDesk/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If no provider API key is set.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY (or GOOGLE_API_KEY) is required. "
                "Please set it in .env file or environment."
            )
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # Third-party loggers are noisy at INFO
        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )
        logging.getLogger("httpx").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
