"""
Runtime configuration read from the environment (and .env, see env.py).

Settings are read once at startup and passed down explicitly; nothing below
the CLI re-reads the environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ValidationError

SUPPORTED_PROVIDERS = ("deepseek", "openai", "gemini")

PROVIDER_DEFAULTS = {
    "deepseek": {"base_url": "https://api.deepseek.com/v1", "model": "deepseek-chat"},
    "openai": {"base_url": "https://api.openai.com/v1", "model": "gpt-4o-mini"},
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "model": "gemini-1.5-flash",
    },
}

OPENFDA_BASE_URL = "https://api.fda.gov"


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 500


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("data/rxcheck.db")
    log_level: str = "INFO"
    provider: ProviderConfig = ProviderConfig(
        name="deepseek",
        base_url=PROVIDER_DEFAULTS["deepseek"]["base_url"],
        api_key="",
        model=PROVIDER_DEFAULTS["deepseek"]["model"],
    )
    openfda_base_url: str = OPENFDA_BASE_URL
    openfda_api_key: Optional[str] = None
    http_timeout: float = 15.0
    ai_timeout: float = 30.0
    max_retries: int = 3
    analysis_workers: int = 1


def _int(env: Mapping[str, str], key: str, default: int, minimum: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an integer, got '{raw}'")
    if value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{key} must be a number, got '{raw}'")
    if value <= 0:
        raise ValidationError(f"{key} must be positive, got {value}")
    return value


def load_provider_config(env: Mapping[str, str]) -> ProviderConfig:
    """
    Build the reasoning provider config.

    RXCHECK_AI_PROVIDER picks the backend; each backend then reads
    RXCHECK_<PROVIDER>_BASE_URL, _API_KEY and _MODEL.
    """
    name = (env.get("RXCHECK_AI_PROVIDER") or "deepseek").strip().lower()
    if name not in SUPPORTED_PROVIDERS:
        raise ValidationError(
            f"Unsupported RXCHECK_AI_PROVIDER '{name}'. Use one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    prefix = f"RXCHECK_{name.upper()}_"
    defaults = PROVIDER_DEFAULTS[name]
    return ProviderConfig(
        name=name,
        base_url=(env.get(prefix + "BASE_URL") or defaults["base_url"]).rstrip("/"),
        api_key=env.get(prefix + "API_KEY", ""),
        model=env.get(prefix + "MODEL") or defaults["model"],
        temperature=_float(env, prefix + "TEMPERATURE", 0.7),
        max_tokens=_int(env, prefix + "MAX_TOKENS", 500, minimum=1),
    )


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read Settings from a mapping (defaults to os.environ)."""
    env = os.environ if env is None else env
    return Settings(
        db_path=Path(env.get("RXCHECK_DB_PATH") or "data/rxcheck.db"),
        log_level=(env.get("RXCHECK_LOG_LEVEL") or "INFO").upper(),
        provider=load_provider_config(env),
        openfda_base_url=(env.get("RXCHECK_OPENFDA_BASE_URL") or OPENFDA_BASE_URL).rstrip("/"),
        openfda_api_key=env.get("RXCHECK_OPENFDA_API_KEY") or None,
        http_timeout=_float(env, "RXCHECK_HTTP_TIMEOUT", 15.0),
        ai_timeout=_float(env, "RXCHECK_AI_TIMEOUT", 30.0),
        max_retries=_int(env, "RXCHECK_MAX_RETRIES", 3, minimum=0),
        analysis_workers=_int(env, "RXCHECK_ANALYSIS_WORKERS", 1, minimum=1),
    )
