import os
from dataclasses import dataclass, field
from typing import Optional

from diligent.errors import ConfigError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _int(name: str, default: int):
    return field(default_factory=lambda: _env_int(name, default))


def _float(name: str, default: float):
    return field(default_factory=lambda: _env_float(name, default))


@dataclass(frozen=True)
class Settings:
    max_followups: int = _int("MAX_FOLLOWUPS", 5)
    max_output_chars: int = _int("MAX_OUTPUT_CHARS", 3000)
    command_timeout: float = _float("COMMAND_TIMEOUT", 10.0)
    aws_region: str = field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    aws_profile: Optional[str] = field(default_factory=lambda: os.getenv("AWS_PROFILE"))
    bedrock_model_id: str = field(default_factory=lambda: os.getenv(
        "BEDROCK_MODEL_ID",
        "anthropic.claude-3-haiku-20240307-v1:0"
    ))
    oracle_max_tokens: int = _int("ORACLE_MAX_TOKENS", 1024)
    oracle_connect_timeout: float = _float("ORACLE_CONNECT_TIMEOUT", 10.0)
    oracle_read_timeout: float = _float("ORACLE_READ_TIMEOUT", 60.0)
    catalog_path: Optional[str] = field(default_factory=lambda: os.getenv("CATALOG_PATH"))
    db_path: str = field(default_factory=lambda: os.getenv("DILIGENT_DB_PATH", "diligent.db"))
    report_path: str = field(default_factory=lambda: os.getenv("REPORT_PATH", "report.json"))
    workers: int = _int("DILIGENT_WORKERS", 1)


def __getattr__(name: str):
    # `settings` is read from the environment on access, so a malformed
    # variable raises ConfigError inside the caller's error handling
    if name == "settings":
        return Settings()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
