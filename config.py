"""
SpendMe configuration
Reads settings from the environment (and a local .env file)
"""
import os
import logging
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the backend, the LLM and the UI"""
    supabase_url: str = ""
    supabase_anon_key: str = ""
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    http_timeout: float = 15.0
    profile_timeout: float = 10.0  # Profile load gives up after this
    currency_symbol: str = "₺"
    currency_code: str = "TRY"
    log_level: str = "INFO"

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process"""
    load_dotenv()

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        llm_model=os.getenv("SPENDME_LLM_MODEL", "gpt-4o-mini"),
        llm_temperature=float(os.getenv("SPENDME_LLM_TEMPERATURE", "0.1")),
        http_timeout=float(os.getenv("SPENDME_HTTP_TIMEOUT", "15")),
        profile_timeout=float(os.getenv("SPENDME_PROFILE_TIMEOUT", "10")),
        currency_symbol=os.getenv("SPENDME_CURRENCY_SYMBOL", "₺"),
        currency_code=os.getenv("SPENDME_CURRENCY_CODE", "TRY"),
        log_level=os.getenv("SPENDME_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str | None = None) -> None:
    """Set up root logging for the app and CLI entry points"""
    level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
