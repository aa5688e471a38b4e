"""
Cadence Configuration System

Loads configuration from:
1. Default config (config/default.yaml in the repository)
2. User config (~/.cadence/config/cadence.yaml)
3. Environment variables (CADENCE_ prefix)

Uses Pydantic for validation and type coercion.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def expand_path(path: str | Path | None) -> Path | None:
    """Expand ~ and environment variables in paths."""
    if path is None:
        return None
    expanded = os.path.expandvars(os.path.expanduser(str(path)))
    return Path(expanded)


class CadenceMeta(BaseModel):
    """Core Cadence metadata."""

    name: str = "Cadence"
    version: str = "0.1.0"


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: Path | None = None

    @field_validator("file", mode="before")
    @classmethod
    def expand_file_path(cls, v: Any) -> Path | None:
        return expand_path(v)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    driver: Literal["sqlite", "postgresql"] = "sqlite"
    path: Path = Path("~/.cadence/data/cadence.db")
    echo: bool = False

    # PostgreSQL settings
    host: str | None = None
    port: int = 5432
    user: str | None = None
    password: str | None = None
    database: str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def expand_db_path(cls, v: Any) -> Path:
        expanded = expand_path(v)
        return expanded if expanded else Path("~/.cadence/data/cadence.db")

    @property
    def url(self) -> str:
        """Generate SQLAlchemy connection URL."""
        if self.driver == "sqlite":
            self.path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{self.path}"
        elif self.driver == "postgresql":
            if not all([self.host, self.user, self.database]):
                raise ValueError("PostgreSQL requires host, user, and database")
            auth = f"{self.user}:{self.password}@" if self.password else f"{self.user}@"
            return f"postgresql+psycopg2://{auth}{self.host}:{self.port}/{self.database}"
        else:
            raise ValueError(f"Unsupported database driver: {self.driver}")


class LLMConfig(BaseModel):
    """Interpretation backend configuration."""

    primary_provider: str = "openai"  # claude or openai
    fallback_provider: str | None = None
    claude_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o-mini"
    max_tokens: int = 1500
    temperature: float = 0.2
    timeout: float = 20.0  # per attempt
    max_retries: int = 1
    retry_delay: float = 1.0


class PipelineConfig(BaseModel):
    """Capture pipeline configuration."""

    max_input_chars: int = 4000
    backend_timeout: float = 45.0  # overall deadline per stage
    max_clarifying_questions: int = 3
    min_subtasks: int = 2
    max_subtasks: int = 4
    heuristics_file: Path | None = None

    @field_validator("heuristics_file", mode="before")
    @classmethod
    def expand_heuristics_path(cls, v: Any) -> Path | None:
        return expand_path(v)


class RoutingConfig(BaseModel):
    """Agenda routing configuration."""

    today_capacity: int = 8
    max_related_suggestions: int = 2


class FocusConfig(BaseModel):
    """Primary focus predictor configuration."""

    open_task_limit: int = 50
    candidate_limit: int = 7
    habit_window_days: int = 7
    min_score: float = 20.0
    raw_max: float = 110.0
    preference_weight: float = 20.0
    avoidance_weight: float = 15.0
    ambition_weight: float = 10.0
    default_ambition: float = 0.5
    ambition_threshold: float = 0.7


class DominoConfig(BaseModel):
    """Domino effect analyzer configuration."""

    keyword_threshold: float = 0.4
    cache_ttl_hours: float = 24.0


class CadenceConfig(BaseSettings):
    """
    Main Cadence configuration.

    Loads from YAML files and environment variables.
    Environment variables use CADENCE_ prefix and __ for nesting.
    Example: CADENCE_ROUTING__TODAY_CAPACITY=6
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    cadence: CadenceMeta = Field(default_factory=CadenceMeta)
    log: LogConfig = Field(default_factory=LogConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    focus: FocusConfig = Field(default_factory=FocusConfig)
    domino: DominoConfig = Field(default_factory=DominoConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment overrides them
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def find_config_file() -> Path | None:
    """
    Find the configuration file.

    Search order:
    1. ~/.cadence/config/cadence.yaml (user config)
    2. ./config/default.yaml (development default)
    3. Repository default (relative to this file)
    """
    user_config = Path.home() / ".cadence" / "config" / "cadence.yaml"
    if user_config.exists():
        return user_config

    dev_config = Path.cwd() / "config" / "default.yaml"
    if dev_config.exists():
        return dev_config

    package_config = Path(__file__).parent.parent.parent / "config" / "default.yaml"
    if package_config.exists():
        return package_config

    return None


def load_yaml_config(path: Path | None) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if path is None or not path.exists():
        return {}

    with open(path) as f:
        data = yaml.safe_load(f)

    return data if data else {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config() -> CadenceConfig:
    """
    Load complete configuration.

    Merges:
    1. Pydantic defaults
    2. YAML file configuration
    3. Environment variables (highest priority)
    """
    config_path = find_config_file()
    yaml_config = load_yaml_config(config_path)

    return CadenceConfig(**yaml_config)


# Global config instance (lazy-loaded)
_config: CadenceConfig | None = None


def get_config() -> CadenceConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
