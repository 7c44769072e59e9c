from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError, field_validator


class Settings(BaseModel):
    supabase_url: HttpUrl
    supabase_service_key: str
    supabase_anon_key: str | None = None
    bot_token: str | None = None
    environment: Literal["local", "staging", "production"] = "local"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = None

    # Telegram ids allowed to run admin commands; chat that receives sweep reports
    admin_telegram_ids: frozenset[int] = frozenset()
    admin_chat_id: int | None = None

    # Billing rules
    bill_grace_days: int = Field(default=7, gt=0)
    expiring_soon_days: int = Field(default=7, ge=0)
    sweep_interval_minutes: int = Field(default=60, gt=0)
    currency: str = "INR"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.bill_grace_days)

    @property
    def expiring_soon_window(self) -> timedelta:
        return timedelta(days=self.expiring_soon_days)


def _parse_id_list(raw: str | None) -> frozenset[int]:
    if not raw:
        return frozenset()
    return frozenset(int(part) for part in raw.split(",") if part.strip())


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    optional_ints = {
        "bill_grace_days": "BILL_GRACE_DAYS",
        "expiring_soon_days": "EXPIRING_SOON_DAYS",
        "sweep_interval_minutes": "SWEEP_INTERVAL_MINUTES",
        "admin_chat_id": "ADMIN_CHAT_ID",
    }

    try:
        extra = {
            field: os.environ[env_key]
            for field, env_key in optional_ints.items()
            if os.environ.get(env_key)
        }
        return Settings(
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            bot_token=os.getenv("BOT_TOKEN"),
            environment=os.getenv("ENVIRONMENT", "local"),
            log_level=os.getenv("LOG_LEVEL"),
            admin_telegram_ids=_parse_id_list(os.getenv("ADMIN_TELEGRAM_IDS")),
            currency=os.getenv("CURRENCY", "INR"),
            **extra,
        )
    except KeyError as exc:
        required_keys = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except ValidationError as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc
    except ValueError as exc:
        # int() on a malformed ADMIN_TELEGRAM_IDS entry
        raise RuntimeError(f"Invalid ADMIN_TELEGRAM_IDS: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
