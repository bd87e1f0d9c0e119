"""
Logging setup for the bots

Two sinks share the root logger: a Rich console for operators and a JSONL
file with one object per record. Turn records carry the conversation, user
and activity ids as extras, so the JSONL sink can be filtered per
conversation.
"""
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

from rich.logging import RichHandler

LEVEL_ICONS = (
    (logging.ERROR, "✖"),
    (logging.WARNING, "⚠"),
    (logging.INFO, "✔"),
)

NOISY_LOGGERS = ("aiohttp", "httpx", "httpcore", "uvicorn.access")


class LevelIconFilter(logging.Filter):
    """Sets record.level_icon for the console format."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.level_icon = next(
            (icon for level, icon in LEVEL_ICONS if record.levelno >= level), "ℹ"
        )
        return True


class JsonlFormatter(logging.Formatter):
    """One JSON object per record; keys in a fixed order, empty keys dropped."""

    KEYS = ("ts", "level", "name", "subsys", "conversation_id", "user_id", "activity_id", "event", "detail")

    def format(self, record: logging.LogRecord) -> str:
        detail = getattr(record, "detail", None)
        values = {
            "ts": datetime.fromtimestamp(record.created).isoformat(sep=" ", timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "detail": record.getMessage() if detail is None else detail,
        }
        obj = {}
        for key in self.KEYS:
            value = values[key] if key in values else getattr(record, key, None)
            if value is not None:
                obj[key] = value
        return json.dumps(obj, ensure_ascii=False, default=str)


class SensitiveDataFilter(logging.Filter):
    """Redacts keys, passwords and tokens found in dict extras. [SFT]"""

    SECRET_KEYS = {
        "vision_access_key",
        "caption_microsoft_app_password",
        "ocr_microsoft_app_password",
        "ocp-apim-subscription-key",
        "authorization",
        "app_password",
        "client_secret",
        "access_token",
        "token",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        for value in record.__dict__.values():
            if isinstance(value, dict):
                self._scrub(value)
        return True

    def _scrub(self, obj: dict) -> None:
        for key, value in obj.items():
            if isinstance(value, dict):
                self._scrub(value)
            elif isinstance(value, str) and str(key).lower() in self.SECRET_KEYS:
                obj[key] = "[REDACTED]"


def init_logging() -> None:
    """Install the console and JSONL sinks on the root logger."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    jsonl_path = Path(os.getenv("LOG_JSONL_PATH", "logs/visionbot.jsonl"))
    jsonl_path.parent.mkdir(parents=True, exist_ok=True)

    console = RichHandler(show_path=False, rich_tracebacks=True)
    console.addFilter(LevelIconFilter())
    console.setFormatter(logging.Formatter("%(level_icon)s %(message)s"))

    jsonl = logging.FileHandler(jsonl_path, encoding="utf-8")
    jsonl.setFormatter(JsonlFormatter())

    for handler in (console, jsonl):
        handler.addFilter(SensitiveDataFilter())

    logging.basicConfig(handlers=[console, jsonl], level=level, force=True)

    third_party_level = os.getenv("THIRD_PARTY_LOG_LEVEL", "WARNING").upper()
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logging.getLogger(__name__).info(
        f"Logging initialized (level {level}, jsonl {jsonl_path})", extra={"subsys": "logging"}
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def shutdown_logging_and_exit(exit_code: int) -> NoReturn:
    """Flush both sinks and exit the process."""
    logging.getLogger(__name__).info(f"Shutting down (exit code {exit_code})", extra={"subsys": "logging"})
    logging.shutdown()
    sys.exit(exit_code)
