"""
Runtime configuration.

Values come from the environment, optionally seeded from a ``.env`` file,
and may be overridden by command line flags.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

DEFAULT_EXTENSIONS = ['.py', '.md', '.yml', '.conf']


class ConfigError(Exception):
    """Raised when the configuration cannot be used to start a run."""


@dataclass
class Config:
    openai_api_key: Optional[str] = None
    root_dir: str = "."
    file_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    db_path: str = "embeddings.sqlite3"
    n_commits: int = 3
    token_limit: int = 1600
    log_level: str = "info"
    embedding_model: str = "text-embedding-3-small"
    embed_timeout_minutes: int = 30
    batch_size: int = 1

    @property
    def batch_timeout(self) -> float:
        return self.embed_timeout_minutes * 60


def parse_extensions(value: str) -> List[str]:
    """Split a comma separated list, adding the leading dot where missing."""
    extensions = []
    for item in value.split(','):
        item = item.strip().lower()
        if not item:
            continue
        if not item.startswith('.'):
            item = '.' + item
        if item not in extensions:
            extensions.append(item)
    return extensions


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_config(env_file: Optional[str] = ".env",
                require_api_key: bool = True,
                require_root: bool = True,
                overrides: Optional[Dict[str, object]] = None) -> Config:
    """
    Build a Config from the environment.

    Args:
        env_file: .env file to load first; existing variables are not overwritten
        require_api_key: raise ConfigError when OPENAI_API_KEY is missing
        require_root: raise ConfigError when the root directory does not exist
        overrides: non-None values replace what the environment provided

    Returns:
        A validated Config
    """
    if env_file and Path(env_file).is_file():
        load_dotenv(env_file)

    config = Config(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        root_dir=os.getenv("ROOT_DIR") or ".",
        file_extensions=parse_extensions(os.getenv("FILE_EXTENSIONS") or ",".join(DEFAULT_EXTENSIONS)),
        db_path=os.getenv("DB_PATH") or "embeddings.sqlite3",
        n_commits=_int_env("N_COMMITS", 3),
        token_limit=_int_env("TOKEN_LIMIT", 1600),
        log_level=(os.getenv("LOG_LEVEL") or "info").lower(),
        embedding_model=os.getenv("EMBEDDING_MODEL") or "text-embedding-3-small",
        embed_timeout_minutes=_int_env("EMBED_TIMEOUT_MINUTES", 30),
        batch_size=_int_env("EMBED_BATCH_SIZE", 1),
    )

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise ConfigError(f"unknown configuration option: {key}")
        if key == "file_extensions" and isinstance(value, str):
            value = parse_extensions(value)
        setattr(config, key, value)

    if require_api_key and not config.openai_api_key:
        raise ConfigError("OPENAI_API_KEY is not set")
    if require_root and not Path(config.root_dir).is_dir():
        raise ConfigError(f"root directory does not exist: {config.root_dir}")
    if not config.file_extensions:
        raise ConfigError("no file extensions selected")
    if config.token_limit < 1:
        raise ConfigError("TOKEN_LIMIT must be at least 1")

    return config
