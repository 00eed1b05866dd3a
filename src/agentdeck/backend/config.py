"""Configuration management module"""
import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


def get_instance_path() -> Path:
    """Get the current instance path from environment or default"""
    instance_path = os.environ.get("AGENTDECK_INSTANCE_PATH")
    if instance_path:
        return Path(instance_path).expanduser()
    return Path.home() / ".agentdeck"


def get_config_file() -> Path | None:
    """Get config file path if it exists"""
    config_file = get_instance_path() / "config.toml"
    if config_file.exists():
        return config_file
    return None


class Settings(BaseSettings):
    """agentdeck configuration settings"""

    # Terminal session configuration
    max_sessions: int = 20
    default_cols: int = 120
    default_rows: int = 30
    read_buffer_size: int = 4096

    # Remote control configuration
    remote_max_message_len: int = 4096

    model_config = SettingsConfigDict(
        env_prefix="AGENTDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML file"""
        config_file = get_config_file()
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance"""
    return Settings()
