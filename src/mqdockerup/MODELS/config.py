"""
Models for the daemon configuration.
"""
from typing import List, Optional

from pydantic import BaseModel, field_validator

from ..UTILS.durations import parse_duration


class MainConfig(BaseModel):
    """
    Check intervals, as '<n><s|m|h|d|w>' durations.
    """
    container_check_interval: str = "5m"
    update_check_interval: str = "30m"

    @field_validator("container_check_interval", "update_check_interval")
    @classmethod
    def check_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def container_check_seconds(self) -> int:
        return parse_duration(self.container_check_interval)

    @property
    def update_check_seconds(self) -> int:
        return parse_duration(self.update_check_interval)


class PublishConfig(BaseModel):
    topic: str = "mqdockerup"
    discovery_prefix: str = "homeassistant"
    ha_discovery: bool = True


class IgnoreConfig(BaseModel):
    """
    Comma separated container names, or '*' for all.
    """
    containers: str = ""
    updates: str = ""

    @staticmethod
    def _split(value: str) -> List[str]:
        return [name.strip() for name in value.split(",") if name.strip()]

    @property
    def container_names(self) -> List[str]:
        return self._split(self.containers)

    @property
    def update_names(self) -> List[str]:
        return self._split(self.updates)


class AccessTokensConfig(BaseModel):
    github: Optional[str] = None
    dockerhub: Optional[str] = None


class RuntimeConfig(BaseModel):
    """
    Container runtime connection and tuning parameters.
    """
    base_url: Optional[str] = None
    self_identifier: str = "mqdockerup"
    inspect_retry_delay: float = 1.0
    create_inspect_attempts: int = 5
    inspect_attempts: int = 3
    progress_interval: float = 1.0
    registry_timeout: float = 30.0
    cache_ttl: float = 300.0
    shutdown_grace: float = 2.0
    stop_timeout: int = 10

    @field_validator("create_inspect_attempts", "inspect_attempts")
    @classmethod
    def check_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("attempts must be at least 1")
        return value

    @field_validator(
        "inspect_retry_delay", "progress_interval", "registry_timeout",
        "cache_ttl", "shutdown_grace",
    )
    @classmethod
    def check_not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value


class DatabaseConfig(BaseModel):
    path: str = "data/database.db"


class LogsConfig(BaseModel):
    level: str = "INFO"
    directory: Optional[str] = None


class AppConfig(BaseModel):
    """
    Complete daemon configuration.
    Built from defaults, a YAML file, a .env file and the process environment.
    """
    main: MainConfig = MainConfig()
    publish: PublishConfig = PublishConfig()
    ignore: IgnoreConfig = IgnoreConfig()
    access_tokens: AccessTokensConfig = AccessTokensConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    database: DatabaseConfig = DatabaseConfig()
    logs: LogsConfig = LogsConfig()
