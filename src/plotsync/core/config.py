"""Application configuration loaded from environment."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class SourceConfig(BaseSettings):
    """Remote plot source configuration."""

    model_config = {"env_prefix": "PLOTSYNC_SOURCE_"}

    provider: str = "mock"
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 15.0
    health_timeout_seconds: float = 5.0


class RegionConfig(BaseSettings):
    """Operating region bounding box in longitude/latitude degrees.

    Defaults cover mainland Tanzania.
    """

    model_config = {"env_prefix": "PLOTSYNC_REGION_"}

    name: str = "Tanzania"
    min_lon: float = 29.0
    max_lon: float = 41.0
    min_lat: float = -12.0
    max_lat: float = -0.5

    def contains(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat


class RenderConfig(BaseSettings):
    """Map rendering configuration."""

    model_config = {"env_prefix": "PLOTSYNC_RENDER_"}

    label_min_zoom: float = 12
    default_zoom: float = 6


class ConnectivityConfig(BaseSettings):
    """Health gating and retry configuration for the remote source."""

    model_config = {"env_prefix": "PLOTSYNC_CONNECTIVITY_"}

    health_ttl_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 2.0


class RefreshConfig(BaseSettings):
    """Periodic auto-refresh configuration."""

    model_config = {"env_prefix": "PLOTSYNC_REFRESH_"}

    enabled: bool = True
    interval_seconds: float = 30.0


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "PLOTSYNC_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    source: SourceConfig = Field(default_factory=SourceConfig)
    region: RegionConfig = Field(default_factory=RegionConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
