"""Configuration management for the allocation engine.

Loads configuration from environment variables or .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

DEFAULT_CONFIDENCE_THRESHOLD = 75


def _parse_threshold(raw: Optional[str]) -> int:
    if raw is None or raw.strip() == "":
        return DEFAULT_CONFIDENCE_THRESHOLD
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(
            "ALLOCATION_CONFIDENCE_THRESHOLD", f"not an integer: {raw!r}"
        )
    if value < 0 or value > 100:
        raise ConfigurationError(
            "ALLOCATION_CONFIDENCE_THRESHOLD", f"must be 0-100, got {value}"
        )
    return value


@dataclass
class EngineConfig:
    """Settings for workflows and repository adapters."""

    # Minimum confidence for auto-allocation
    confidence_threshold: int = DEFAULT_CONFIDENCE_THRESHOLD

    # JSON store directory (CLI default data source)
    data_dir: Optional[Path] = None

    # Optional YAML file overriding the category compatibility table
    category_config: Optional[Path] = None

    # Supabase / PostgREST
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        data_dir = os.getenv("ALLOCATION_DATA_DIR")
        category_config = os.getenv("ALLOCATION_CATEGORY_CONFIG")
        return cls(
            confidence_threshold=_parse_threshold(
                os.getenv("ALLOCATION_CONFIDENCE_THRESHOLD")
            ),
            data_dir=Path(data_dir) if data_dir else None,
            category_config=Path(category_config) if category_config else None,
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
        )

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "EngineConfig":
        """
        Load configuration from .env file and environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                      looks for .env in the project root.

        Returns:
            EngineConfig instance with loaded values
        """
        if env_file:
            load_dotenv(env_file)
        else:
            project_root = Path(__file__).parent.parent.parent
            env_path = project_root / ".env"
            if env_path.exists():
                load_dotenv(env_path)

        return cls.from_env()

    def has_supabase(self) -> bool:
        """Check if Supabase credentials are configured."""
        return bool(self.supabase_url and self.supabase_key)


# Global config instance (lazy loaded)
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.load()
    return _config


def reload_config(env_file: Optional[Path] = None) -> EngineConfig:
    """Reload configuration from environment."""
    global _config
    _config = EngineConfig.load(env_file)
    return _config
