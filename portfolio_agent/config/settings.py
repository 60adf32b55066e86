"""Application settings loaded from the environment.

Values come from process environment variables (a local ``.env`` file is
loaded first via python-dotenv). Every component receives a ``Settings``
instance instead of reading ``os.environ`` directly, so tests can build one
with overrides.

Environment Variables:
- OPENAI_API_KEY, OPENAI_MODEL, LLM_TEMPERATURE, LLM_MAX_TOKENS
- TTS_MODEL, TTS_VOICE, TRANSCRIBE_MODEL, TTS_MAX_BYTES
- MONGODB_URI, MONGODB_DATABASE
- SITE_URL, FRONTEND_URL
- PIVOT_LANGUAGE, TIMEZONE, TIMEZONE_LABEL
- MAX_MESSAGE_LENGTH, FORBIDDEN_KEYWORDS (comma separated)
- ENABLE_USERS, ENABLE_COMPANY_INFO (capability flags)
- COMPANY_INFO_TTL_SECONDS, SESSION_TTL_SECONDS, SESSION_MAX_ENTRIES
- COMPANY_NAME, AGENT_NAME, CONTACT_PHONE, CONTACT_EMAIL, CONTACT_WEBSITE
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _is_feature_enabled(feature_name: str, default: str = "false") -> bool:
    """Check if a feature is enabled via environment variable.

    Args:
        feature_name: Name of the feature flag (e.g., 'ENABLE_USERS')
        default: Value used when the variable is unset

    Returns:
        True if feature is enabled, False otherwise
    """
    value = os.getenv(feature_name, default).lower()
    return value in ("true", "1", "yes", "on")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _list_env(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    # --- LLM ---
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.5
    llm_max_tokens: int = 800

    # --- Speech ---
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    transcribe_model: str = "whisper-1"
    tts_max_bytes: int = 4000

    # --- Document store ---
    mongodb_uri: Optional[str] = None
    mongodb_database: str = "portfolio"

    # --- Site / locale ---
    site_url: str = "https://alsaaeid-ellithy.vercel.app"
    frontend_url: Optional[str] = None
    pivot_language: str = "en"
    timezone: str = "Africa/Cairo"
    timezone_label: str = "Mansoura"

    # --- Input policy ---
    max_message_length: int = 1000
    extra_forbidden_keywords: Tuple[str, ...] = field(default_factory=tuple)

    # --- Capabilities ---
    enable_users: bool = False
    enable_company_info: bool = True

    # --- Caches ---
    company_info_ttl_seconds: int = 3600
    session_ttl_seconds: int = 86400
    session_max_entries: int = 10000

    # --- Branding / contact ---
    company_name: str = "Alsaaeid Ellithy"
    agent_name: str = "Portfolio Agent"
    contact_phone: str = "+01028496209"
    contact_email: str = "elsaeidellithy@gmail.com"
    contact_website: str = "alsaaeid-ellithy.vercel.app"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            llm_temperature=_float_env("LLM_TEMPERATURE", defaults.llm_temperature),
            llm_max_tokens=_int_env("LLM_MAX_TOKENS", defaults.llm_max_tokens),
            tts_model=os.getenv("TTS_MODEL", defaults.tts_model),
            tts_voice=os.getenv("TTS_VOICE", defaults.tts_voice),
            transcribe_model=os.getenv("TRANSCRIBE_MODEL", defaults.transcribe_model),
            tts_max_bytes=_int_env("TTS_MAX_BYTES", defaults.tts_max_bytes),
            mongodb_uri=os.getenv("MONGODB_URI"),
            mongodb_database=os.getenv("MONGODB_DATABASE", defaults.mongodb_database),
            site_url=os.getenv("SITE_URL", defaults.site_url).rstrip("/"),
            frontend_url=os.getenv("FRONTEND_URL"),
            pivot_language=os.getenv("PIVOT_LANGUAGE", defaults.pivot_language),
            timezone=os.getenv("TIMEZONE", defaults.timezone),
            timezone_label=os.getenv("TIMEZONE_LABEL", defaults.timezone_label),
            max_message_length=_int_env("MAX_MESSAGE_LENGTH", defaults.max_message_length),
            extra_forbidden_keywords=_list_env("FORBIDDEN_KEYWORDS"),
            enable_users=_is_feature_enabled("ENABLE_USERS"),
            enable_company_info=_is_feature_enabled("ENABLE_COMPANY_INFO", "true"),
            company_info_ttl_seconds=_int_env("COMPANY_INFO_TTL_SECONDS", defaults.company_info_ttl_seconds),
            session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", defaults.session_ttl_seconds),
            session_max_entries=_int_env("SESSION_MAX_ENTRIES", defaults.session_max_entries),
            company_name=os.getenv("COMPANY_NAME", defaults.company_name),
            agent_name=os.getenv("AGENT_NAME", defaults.agent_name),
            contact_phone=os.getenv("CONTACT_PHONE", defaults.contact_phone),
            contact_email=os.getenv("CONTACT_EMAIL", defaults.contact_email),
            contact_website=os.getenv("CONTACT_WEBSITE", defaults.contact_website),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance.

    Example:
        from portfolio_agent.config.settings import get_settings

        settings = get_settings()
        if settings.enable_users:
            ...
    """
    return Settings.from_env()
