"""
Bin Duty Dashboard — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/household.db"

    # Twilio (SMS + WhatsApp channels)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_SMS_FROM: str = ""        # e.g. "+15005550006"
    TWILIO_WHATSAPP_FROM: str = ""   # e.g. "+14155238886" (no "whatsapp:" prefix)

    # SMTP (email channel)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_USE_TLS: bool = True

    # Delivery fan-out
    DELIVERY_TIMEOUT_SECONDS: float = 10.0
    DELIVERY_MAX_ATTEMPTS: int = 2

    LOG_LEVEL: str = "INFO"

    @field_validator("SMTP_USE_TLS", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @field_validator("DELIVERY_TIMEOUT_SECONDS")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("DELIVERY_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("DELIVERY_MAX_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DELIVERY_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/household.db"),
            TWILIO_ACCOUNT_SID=os.getenv("TWILIO_ACCOUNT_SID", ""),
            TWILIO_AUTH_TOKEN=os.getenv("TWILIO_AUTH_TOKEN", ""),
            TWILIO_SMS_FROM=os.getenv("TWILIO_SMS_FROM", ""),
            TWILIO_WHATSAPP_FROM=os.getenv("TWILIO_WHATSAPP_FROM", ""),
            SMTP_HOST=os.getenv("SMTP_HOST", ""),
            SMTP_PORT=os.getenv("SMTP_PORT", "587"),
            SMTP_USERNAME=os.getenv("SMTP_USERNAME", ""),
            SMTP_PASSWORD=os.getenv("SMTP_PASSWORD", ""),
            SMTP_FROM=os.getenv("SMTP_FROM", ""),
            SMTP_USE_TLS=os.getenv("SMTP_USE_TLS", "true"),
            DELIVERY_TIMEOUT_SECONDS=os.getenv("DELIVERY_TIMEOUT_SECONDS", "10"),
            DELIVERY_MAX_ATTEMPTS=os.getenv("DELIVERY_MAX_ATTEMPTS", "2"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
