import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from dotenv import load_dotenv

load_dotenv()

VERSION = "0.1.0"

# Lifecycle / intrinsic names a contract may use verbatim.
DEFAULT_EXCLUDED_IDENTIFIERS: FrozenSet[str] = frozenset({"constructor", "push"})
DEFAULT_HOST_NAMESPACE = "UltraDark"
DEFAULT_GAMMA_PRIMITIVE = "chargeGamma"
DEFAULT_SANITIZE_PREFIX = "sanitized_"
DEFAULT_MAX_TREE_DEPTH = 256
DEFAULT_MAX_SOURCE_LENGTH = 100_000
MAX_DUMP_LENGTH = 100_000

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class CompilerSettings:
    """Settings shared by every compilation. Immutable once loaded."""

    host_namespace: str = DEFAULT_HOST_NAMESPACE
    gamma_primitive: str = DEFAULT_GAMMA_PRIMITIVE
    sanitize_prefix: str = DEFAULT_SANITIZE_PREFIX
    excluded_identifiers: FrozenSet[str] = field(default=DEFAULT_EXCLUDED_IDENTIFIERS)
    max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH
    max_source_length: int = DEFAULT_MAX_SOURCE_LENGTH
    strict_gamma: bool = False
    dump_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CompilerSettings":
        """
        Build settings from environment variables (and `.env`, loaded at import).

        EXCLUDED_IDENTIFIERS is a comma separated list added to the defaults;
        the defaults themselves can never be removed.
        """
        extra_excluded = {
            name.strip() for name in os.getenv("EXCLUDED_IDENTIFIERS", "").split(",") if name.strip()
        }
        return cls(
            host_namespace=os.getenv("HOST_NAMESPACE", DEFAULT_HOST_NAMESPACE),
            gamma_primitive=os.getenv("GAMMA_PRIMITIVE", DEFAULT_GAMMA_PRIMITIVE),
            sanitize_prefix=os.getenv("SANITIZE_PREFIX", DEFAULT_SANITIZE_PREFIX),
            excluded_identifiers=DEFAULT_EXCLUDED_IDENTIFIERS | frozenset(extra_excluded),
            max_tree_depth=_env_int("MAX_TREE_DEPTH", DEFAULT_MAX_TREE_DEPTH),
            max_source_length=_env_int("MAX_SOURCE_LENGTH", DEFAULT_MAX_SOURCE_LENGTH),
            strict_gamma=_env_bool("STRICT_GAMMA"),
            dump_dir=os.getenv("DUMP_DIR") or None,
        )


_settings: Optional[CompilerSettings] = None


def get_settings() -> CompilerSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = CompilerSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() rereads the environment."""
    global _settings
    _settings = None


def configure_logger(name: str) -> logging.Logger:
    """Return a module logger honouring LOG_LEVEL, with a console handler attached once."""
    logger = logging.getLogger(name)
    log_level = getattr(logging, os.getenv("LOG_LEVEL", "WARNING").upper(), logging.WARNING)
    logger.setLevel(log_level)
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)
    return logger
