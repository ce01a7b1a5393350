# trafficgen/config.py
from __future__ import annotations
from typing import Optional
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ----------------
    # Targets
    # ----------------
    url_file: str = Field("/data/url.txt", alias="URL_FILE")

    # ----------------
    # Download workers
    # ----------------
    speed_limit: int = Field(200, alias="DOWNLOAD_SPEED_LIMIT")  # KB/s per worker, 0 = unlimited
    threads: int = Field(2, alias="THREADS")
    request_timeout: int = Field(60, alias="REQUEST_TIMEOUT")    # seconds, whole fetch
    chunk_size: int = Field(1024, alias="CHUNK_SIZE")            # bytes per read

    # ----------------
    # Telemetry
    # ----------------
    sleep_interval: int = Field(5, alias="SLEEP_INTERVAL")       # seconds between reports
    net_interface: str = Field("eth0", alias="NET_INTERFACE")
    metrics_port: int = Field(0, alias="METRICS_PORT")           # 0 = no prometheus endpoint

    # ----------------
    # Logging
    # ----------------
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")
    log_json: bool = Field(False, alias="LOG_JSON")

    # ----------------
    # Pydantic settings
    # ----------------
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator(
        "speed_limit", "threads", "request_timeout", "chunk_size",
        "sleep_interval", "metrics_port",
        mode="before",
    )
    @classmethod
    def _int_or_default(cls, value, info: ValidationInfo):
        # A value that is not an integer falls back to the default instead of failing startup.
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            return cls.model_fields[info.field_name].default

    @field_validator("threads", "request_timeout", "chunk_size", "sleep_interval")
    @classmethod
    def _positive_or_default(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            return cls.model_fields[info.field_name].default
        return value


def load_settings(**overrides) -> Settings:
    """Build the settings once at startup; the result is passed around, never mutated."""
    return Settings(**overrides)
