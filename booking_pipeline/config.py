"""
Centralized configuration with environment variable overrides.

Brand copy, model parameters, payment and database settings are all
configurable here. Nothing is hardcoded in pipeline or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_pipeline.logging_context import LOG_FORMAT, install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BrandConfig:
    """Who the assistant speaks for."""

    coach_name: str = os.getenv("COACH_NAME", "Daniel DaGalow")
    assistant_name: str = os.getenv("ASSISTANT_NAME", "Daniel DaGalow's AI assistant")
    timezone: str = os.getenv("BOOKING_TIMEZONE", "Europe/Madrid")


@dataclass(frozen=True)
class ModelConfig:
    """LLM completion settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-3.5-turbo")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.7")
    max_tokens: int = _safe_int("LLM_MAX_TOKENS", "500")
    presence_penalty: float = _safe_float("LLM_PRESENCE_PENALTY", "0.1")
    frequency_penalty: float = _safe_float("LLM_FREQUENCY_PENALTY", "0.1")
    welcome_temperature: float = _safe_float("WELCOME_TEMPERATURE", "0.2")
    kickoff_temperature: float = _safe_float("KICKOFF_TEMPERATURE", "0.6")
    api_key: str = os.getenv("OPENAI_API_KEY", "")


@dataclass(frozen=True)
class PaymentConfig:
    """Hosted checkout settings."""

    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    site_url: str = os.getenv("SITE_URL", "http://localhost:5173")
    currency: str = os.getenv("PAYMENT_CURRENCY", "eur")
    chat_page_path: str = os.getenv("CHAT_PAGE_PATH", "/chatbot")


@dataclass(frozen=True)
class DatabaseConfig:
    """Hosted Postgres (Supabase REST) settings and table names."""

    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    request_timeout_sec: float = _safe_float("DB_REQUEST_TIMEOUT", "10.0")
    appointments_table: str = os.getenv("APPOINTMENTS_TABLE", "appointments")
    subscriptions_table: str = os.getenv("SUBSCRIPTIONS_TABLE", "subscriptions")
    pitch_requests_table: str = os.getenv("PITCH_REQUESTS_TABLE", "pitch_requests")
    conversations_table: str = os.getenv("CONVERSATIONS_TABLE", "chatbot_conversations")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    brand: BrandConfig = field(default_factory=BrandConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    history_limit: int = _safe_int("CHAT_HISTORY_LIMIT", "20")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if not 0.0 <= config.model.welcome_temperature <= 2.0:
        raise ValueError(
            "WELCOME_TEMPERATURE must be between 0.0 and 2.0, "
            f"got {config.model.welcome_temperature}"
        )
    if not 0.0 <= config.model.kickoff_temperature <= 2.0:
        raise ValueError(
            "KICKOFF_TEMPERATURE must be between 0.0 and 2.0, "
            f"got {config.model.kickoff_temperature}"
        )
    if config.model.max_tokens < 1:
        raise ValueError(f"LLM_MAX_TOKENS must be >= 1, got {config.model.max_tokens}")

    for name, value in [
        ("LLM_PRESENCE_PENALTY", config.model.presence_penalty),
        ("LLM_FREQUENCY_PENALTY", config.model.frequency_penalty),
    ]:
        if not -2.0 <= value <= 2.0:
            raise ValueError(f"{name} must be between -2.0 and 2.0, got {value}")

    if not config.payment.chat_page_path.startswith("/"):
        raise ValueError(
            f"CHAT_PAGE_PATH must start with '/', got {config.payment.chat_page_path!r}"
        )
    if len(config.payment.currency) != 3:
        raise ValueError(
            f"PAYMENT_CURRENCY must be a 3-letter ISO code, got {config.payment.currency!r}"
        )
    if config.database.request_timeout_sec <= 0:
        raise ValueError(
            f"DB_REQUEST_TIMEOUT must be > 0, got {config.database.request_timeout_sec}"
        )
    if config.history_limit < 1:
        raise ValueError(f"CHAT_HISTORY_LIMIT must be >= 1, got {config.history_limit}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for '%s'", config.brand.coach_name)
    return config


# Singleton instance
settings = load_config()
