# backend/mercado/config.py
from __future__ import annotations
import os


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing or invalid."""


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer")


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relational store. An explicitly empty DATABASE_URL puts the API in
    # setup-required mode (every route except /health answers 503).
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///mercado.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }

    # Cash seeded into the drawer when an operator logs in (R$ 200,00)
    OPENING_CASH_CENTS = _env_int("OPENING_CASH_CENTS", 20000)

    # Currency units per loyalty point. Product decision: 1 point per real.
    LOYALTY_POINTS_DIVISOR = _env_int("LOYALTY_POINTS_DIVISOR", 1)

    DEFAULT_LOW_STOCK_THRESHOLD = _env_int("DEFAULT_LOW_STOCK_THRESHOLD", 10)

    # AI advisory (Gemini generateContent REST API)
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_BASE_URL = os.environ.get(
        "GEMINI_BASE_URL",
        "https://generativelanguage.googleapis.com/v1beta",
    )
    # None means no client-side timeout
    ADVISORY_TIMEOUT_SECONDS = _env_float("ADVISORY_TIMEOUT_SECONDS")

    # Default file used by `flask data export|import`
    SNAPSHOT_PATH = os.environ.get("SNAPSHOT_PATH", "mercado-snapshot.json")


def validate_config(config) -> None:
    """Fail fast on settings the core cannot run without."""
    if not config.get("SQLALCHEMY_DATABASE_URI"):
        raise ConfigurationError("SETUP_REQUIRED:DATABASE_URL")
    divisor = config.get("LOYALTY_POINTS_DIVISOR")
    if not isinstance(divisor, int) or divisor <= 0:
        raise ConfigurationError("LOYALTY_POINTS_DIVISOR must be a positive integer")
    if config.get("OPENING_CASH_CENTS", 0) < 0:
        raise ConfigurationError("OPENING_CASH_CENTS cannot be negative")
