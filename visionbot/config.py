"""Configuration loading and environment setup."""
import os
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .utils.env import clean_env_value, get_float, get_int, get_str
from .utils.logging import get_logger

logger = get_logger(__name__)

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path.cwd() / ".env", verbose=False)

# Also try loading from the project root in case we're running from a subdirectory
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env", verbose=False)


REQUIRED_VARS: List[str] = [
    "VISION_ENDPOINT",
    "VISION_ACCESS_KEY",
    "OCR_BOT_ID",
    "OCR_MICROSOFT_APP_ID",
    "OCR_MICROSOFT_APP_PASSWORD",
]

SECRET_VARS = {
    "VISION_ACCESS_KEY",
    "CAPTION_MICROSOFT_APP_PASSWORD",
    "OCR_MICROSOFT_APP_PASSWORD",
}

RESULT_STORE_BACKENDS = ("memory", "json")


def validate_required_env() -> None:
    """
    Validate that all required environment variables are present.

    The caption bot identity is optional: a deployment may host only the OCR bot.
    """
    missing_vars = [var for var in REQUIRED_VARS if not clean_env_value(os.getenv(var))]
    if missing_vars:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing_vars)}"
        )

    backend = get_str("RESULT_STORE_BACKEND", "memory").lower()
    if backend not in RESULT_STORE_BACKENDS:
        raise ConfigurationError(
            f"RESULT_STORE_BACKEND must be one of {RESULT_STORE_BACKENDS}, got '{backend}'"
        )


def load_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config = {
        # VISION SERVICE
        "VISION_ENDPOINT": get_str("VISION_ENDPOINT"),
        "VISION_ACCESS_KEY": get_str("VISION_ACCESS_KEY"),
        "VISION_TIMEOUT_S": get_float("VISION_TIMEOUT_S", 30.0),
        "VISION_LANGUAGE": get_str("VISION_LANGUAGE", "en"),

        # BOT IDENTITIES (bot id is the recipient id on inbound activities, 28:xxx)
        "CAPTION_BOT_ID": get_str("CAPTION_BOT_ID"),
        "CAPTION_MICROSOFT_APP_ID": get_str("CAPTION_MICROSOFT_APP_ID"),
        "CAPTION_MICROSOFT_APP_PASSWORD": get_str("CAPTION_MICROSOFT_APP_PASSWORD"),
        "OCR_BOT_ID": get_str("OCR_BOT_ID"),
        "OCR_MICROSOFT_APP_ID": get_str("OCR_MICROSOFT_APP_ID"),
        "OCR_MICROSOFT_APP_PASSWORD": get_str("OCR_MICROSOFT_APP_PASSWORD"),
        "BOT_TOKEN_ENDPOINT": get_str(
            "BOT_TOKEN_ENDPOINT",
            "https://login.microsoftonline.com/botframework.com/oauth2/v2.0/token",
        ),
        "BOT_TOKEN_SCOPE": get_str("BOT_TOKEN_SCOPE", "https://api.botframework.com/.default"),

        # WEB HOST
        "HOST": get_str("HOST", "0.0.0.0"),
        "PORT": get_int("PORT", 3978),

        # OCR RESULT STORE
        "RESULT_STORE_BACKEND": get_str("RESULT_STORE_BACKEND", "memory").lower(),
        "RESULT_STORE_DIR": Path(get_str("RESULT_STORE_DIR", "data/ocr_results")),
        "OCR_RESULT_TTL_S": get_int("OCR_RESULT_TTL_S", 0),

        # SHARED HTTP CLIENT
        "HTTP_CONNECT_TIMEOUT_MS": get_int("HTTP_CONNECT_TIMEOUT_MS", 5000),
        "HTTP_READ_TIMEOUT_MS": get_int("HTTP_READ_TIMEOUT_MS", 30000),
        "HTTP_MAX_CONNECTIONS": get_int("HTTP_MAX_CONNECTIONS", 64),

        # LOGGING
        "LOG_LEVEL": get_str("LOG_LEVEL", "INFO").upper(),
        "LOG_JSONL_PATH": get_str("LOG_JSONL_PATH", "logs/visionbot.jsonl"),
    }

    logger.debug(f"Configuration loaded with {len(config)} settings")
    return config
