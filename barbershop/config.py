"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Literal, Mapping, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

SUPABASE_URL_ENV = "SUPABASE_URL"
SUPABASE_KEY_ENV = "SUPABASE_ANON_KEY"


class SupabaseConfig(BaseModel):
    """Remote store connection settings."""
    url: Optional[str] = None
    api_key: Optional[str] = None  # Falls back to the environment, then the keyring
    timeout_seconds: float = 10

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure the request timeout is positive."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Supabase url must start with http:// or https://, got {value}")
        return value.rstrip("/")


class MockConfig(BaseModel):
    """Demo store settings."""
    data_file: Optional[Path] = None  # Persist demo state between runs


class ChatConfig(BaseModel):
    """Conversational assistant settings."""
    max_time_options: int = 8

    @field_validator("max_time_options")
    @classmethod
    def validate_max_time_options(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_time_options must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    backend: Literal["auto", "mock", "supabase"] = "auto"
    timezone: str = "America/Sao_Paulo"
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    mock: MockConfig = Field(default_factory=MockConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Fill missing Supabase settings from SUPABASE_URL / SUPABASE_ANON_KEY.

        Values present in the file always win.
        """
        environ = os.environ if environ is None else environ
        updates = {}

        if not self.supabase.url and environ.get(SUPABASE_URL_ENV):
            updates["url"] = environ[SUPABASE_URL_ENV]
        if not self.supabase.api_key and environ.get(SUPABASE_KEY_ENV):
            updates["api_key"] = environ[SUPABASE_KEY_ENV]

        if not updates:
            return self

        supabase = SupabaseConfig(**{**self.supabase.model_dump(), **updates})
        return self.model_copy(update={"supabase": supabase})


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_file: Optional[Path] = None) -> AppConfig:
    """
    Load the configuration used by the CLI.

    An explicitly given file must exist; without one, a missing default
    config.yaml yields the built-in defaults (demo mode unless the
    environment provides Supabase credentials).
    """
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file).with_env_overrides()

    config_path = get_default_config_path()
    if config_path.exists():
        return AppConfig.load_from_yaml(config_path).with_env_overrides()

    return AppConfig().with_env_overrides()
