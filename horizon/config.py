from pydantic import BaseModel
import os
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

# Load .env file if it exists (before reading os.getenv)
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Only set if not already in environment (env vars take precedence)
                if key not in os.environ:
                    os.environ[key] = value


def _sanitize_ascii(val: str) -> str:
    """Strip non-ASCII characters from config values (prevents encoding errors)"""
    return val.encode('ascii', errors='ignore').decode('ascii').strip()


def _split_csv(val: str) -> List[str]:
    return [item.strip() for item in val.split(",") if item.strip()]


class Settings(BaseModel):
    # Network
    http_host: str = os.getenv("HORIZON_HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HORIZON_HTTP_PORT", "3001"))
    cors_origins: List[str] = _split_csv(os.getenv("HORIZON_CORS_ORIGINS", "http://localhost:3000"))

    # OpenAI: tool planning, synthesis and speech (sanitized to prevent 'ascii' codec errors)
    openai_api_key: str = _sanitize_ascii(os.getenv("OPENAI_API_KEY", ""))
    openai_base_url: str = _sanitize_ascii(os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    openai_chat_model: str = _sanitize_ascii(os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"))
    openai_tts_model: str = _sanitize_ascii(os.getenv("OPENAI_TTS_MODEL", "tts-1"))
    openai_tts_voice: str = _sanitize_ascii(os.getenv("OPENAI_TTS_VOICE", "alloy"))

    # Data providers
    alpha_vantage_api_key: str = _sanitize_ascii(os.getenv("ALPHA_VANTAGE_API_KEY", ""))
    gnews_api_key: str = _sanitize_ascii(os.getenv("GNEWS_API_KEY", ""))
    trading_economics_api_key: str = _sanitize_ascii(os.getenv("TRADING_ECONOMICS_API_KEY", ""))
    stability_api_key: str = _sanitize_ascii(os.getenv("STABILITY_AI_API_KEY", ""))
    ocr_space_api_key: str = _sanitize_ascii(os.getenv("OCR_SPACE_API_KEY", ""))

    # Provider calls
    http_timeout_s: float = float(os.getenv("HTTP_TIMEOUT", "10"))
    news_max_results: int = int(os.getenv("NEWS_MAX_RESULTS", "5"))

    # Macro-indicator response cache
    macro_cache_ttl_s: float = float(os.getenv("MACRO_CACHE_TTL", "3600"))
    macro_cache_max: int = int(os.getenv("MACRO_CACHE_MAX", "128"))


settings = Settings()


def _mask(key: str) -> str:
    return '***' + key[-4:] if len(key) > 4 else 'EMPTY'


def log_provider_config(cfg: Settings = settings):
    """Log which providers have credentials, keys masked to their last 4 chars."""
    logger.info(f"Config: Model → {cfg.openai_base_url}, model={cfg.openai_chat_model} (key={_mask(cfg.openai_api_key)})")
    logger.info(f"Config: TTS → {cfg.openai_tts_model}/{cfg.openai_tts_voice}")
    providers = {
        "alpha_vantage": cfg.alpha_vantage_api_key,
        "gnews": cfg.gnews_api_key,
        "trading_economics": cfg.trading_economics_api_key,
        "stability": cfg.stability_api_key,
        "ocr_space": cfg.ocr_space_api_key,
    }
    for name, key in providers.items():
        logger.info(f"Config: {name} key={_mask(key)}")
