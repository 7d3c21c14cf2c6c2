"""Engine configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from study_engine.scheduling.scheduler import REVIEW_SCHEDULE_HOURS


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from config/settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'scheduler' in data:
            scheduler = data['scheduler']
            flattened['max_interval_hours'] = scheduler.get('max_interval_hours')
            flattened['struggling_ease_threshold'] = scheduler.get('struggling_ease_threshold')
        if 'session' in data:
            session = data['session']
            flattened['due_query_limit'] = session.get('due_query_limit')
            flattened['struggling_query_limit'] = session.get('struggling_query_limit')
            flattened['minutes_per_question'] = session.get('minutes_per_question')
        if 'answers' in data:
            flattened['answer_max_attempts'] = data['answers'].get('max_attempts')

        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Engine settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STUDY_",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Scheduler
    max_interval_hours: int = Field(default=43800, ge=REVIEW_SCHEDULE_HOURS[-1])  # 5 years
    struggling_ease_threshold: float = Field(default=2.0)

    # Adaptive sessions
    due_query_limit: int = Field(default=50, gt=0)
    struggling_query_limit: int = Field(default=20, gt=0)
    minutes_per_question: float = Field(default=1.5, gt=0)

    # Answer processing (first try + one retry)
    answer_max_attempts: int = Field(default=2, ge=1)

    project_root: Path = Field(default_factory=_find_project_root)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (STUDY_* environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get engine settings singleton."""
    return Settings()
