"""Configuration loading utilities for YAML-based application settings."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .logging_config import get_logger


logger = get_logger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from YAML configuration file."""

    app_name: str
    debug: bool
    host: str
    port: int
    log_level: str
    cors_origins: list[str]
    firebase_enabled: bool
    firebase_project_id: Optional[str]
    firebase_credentials_path: Optional[str]
    users_collection: str
    loans_collection: str
    plans_collection: str
    notifications_collection: str
    reset_codes_collection: str
    razorpay_enabled: bool
    razorpay_key_id: Optional[str]
    razorpay_key_secret: Optional[str]
    razorpay_api_base_url: str
    razorpay_timeout_sec: int
    razorpay_currency: str
    loan_confirmation_code: str
    loan_confirmation_ttl_minutes: int
    loan_min_amount: int
    sweep_enabled: bool
    sweep_interval_sec: int
    reset_code_ttl_minutes: int
    mail_enabled: bool
    smtp_host: Optional[str]
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    mail_from: str


def _to_bool(value: Any, default: bool = False) -> bool:
    """Convert value to bool with a default fallback."""
    try:
        if isinstance(value, bool):
            return value
        return value.strip().lower() in {"1", "true", "yes", "on"}
    except (AttributeError, ValueError):
        logger.warning("Invalid boolean value '%s'. Using default=%s", value, default)
        return default


def _to_int(value: Any, default: int) -> int:
    """Convert value to int with a default fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_list(value: Any) -> list[str]:
    """Convert list-like or comma-separated value to list[str]."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _optional_str(value: Any) -> Optional[str]:
    """Return a stripped string or None for empty values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _read_config(path: Optional[Path] = None) -> dict:
    """Read and parse YAML configuration."""
    config_path = path or _CONFIG_PATH
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except yaml.YAMLError:
        logger.exception("Failed to parse config file at %s", config_path)
        return {}


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load and validate application settings from `config.yml`."""
    config = _read_config(path)
    app_cfg = config.get("app") or {}
    firebase_cfg = config.get("firebase") or {}
    razorpay_cfg = config.get("razorpay") or {}
    loans_cfg = config.get("loans") or {}
    sweep_cfg = config.get("sweep") or {}
    reset_cfg = config.get("password_reset") or {}
    mail_cfg = config.get("mail") or {}

    cors_origins = _to_list(app_cfg.get("cors_origins")) or [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    return AppSettings(
        app_name=str(app_cfg.get("name", "Loan Ledger API")),
        debug=_to_bool(app_cfg.get("debug", False), False),
        host=str(app_cfg.get("host", "127.0.0.1")),
        port=_to_int(app_cfg.get("port", 8000), 8000),
        log_level=str(app_cfg.get("log_level", "INFO")),
        cors_origins=cors_origins,
        firebase_enabled=_to_bool(firebase_cfg.get("enabled", False), False),
        firebase_project_id=_optional_str(firebase_cfg.get("project_id")),
        firebase_credentials_path=_optional_str(firebase_cfg.get("credentials_path")),
        users_collection=str(firebase_cfg.get("users_collection", "users")),
        loans_collection=str(firebase_cfg.get("loans_collection", "loans")),
        plans_collection=str(firebase_cfg.get("plans_collection", "plans")),
        notifications_collection=str(firebase_cfg.get("notifications_collection", "notifications")),
        reset_codes_collection=str(firebase_cfg.get("reset_codes_collection", "password_reset_codes")),
        razorpay_enabled=_to_bool(razorpay_cfg.get("enabled", False), False),
        razorpay_key_id=_optional_str(razorpay_cfg.get("key_id")),
        razorpay_key_secret=_optional_str(razorpay_cfg.get("key_secret")),
        razorpay_api_base_url=str(razorpay_cfg.get("api_base_url", "https://api.razorpay.com")),
        razorpay_timeout_sec=_to_int(razorpay_cfg.get("timeout_sec", 15), 15),
        razorpay_currency=str(razorpay_cfg.get("currency", "INR")).upper(),
        loan_confirmation_code=str(loans_cfg.get("confirmation_code", "1234")),
        loan_confirmation_ttl_minutes=_to_int(loans_cfg.get("confirmation_ttl_minutes", 10), 10),
        loan_min_amount=_to_int(loans_cfg.get("min_amount", 1000), 1000),
        sweep_enabled=_to_bool(sweep_cfg.get("enabled", False), False),
        sweep_interval_sec=_to_int(sweep_cfg.get("interval_sec", 3600), 3600),
        reset_code_ttl_minutes=_to_int(reset_cfg.get("code_ttl_minutes", 10), 10),
        mail_enabled=_to_bool(mail_cfg.get("enabled", False), False),
        smtp_host=_optional_str(mail_cfg.get("smtp_host")),
        smtp_port=_to_int(mail_cfg.get("smtp_port", 587), 587),
        smtp_username=_optional_str(mail_cfg.get("smtp_username")),
        smtp_password=_optional_str(mail_cfg.get("smtp_password")),
        mail_from=str(mail_cfg.get("from_address", "no-reply@loanledger.local")),
    )
