"""Configuration settings for the droplet API."""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """API configuration settings."""

    api_title: str = "OpenClaw Droplet Creator"
    api_description: str = "Provision OpenClaw droplets on DigitalOcean and report readiness"
    api_version: str = "0.1.0"

    port: int = Field(default=3000, description="Listening port")
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Render logs as JSON")

    # DigitalOcean settings
    do_api_token: str = Field(default="", description="DigitalOcean API token")
    do_ssh_key_ids: str = Field(
        default="",
        description="Comma-separated SSH key ids or fingerprints added to new droplets",
    )
    do_region: str = Field(default="nyc1", description="Region of new droplets")
    do_api_base_url: str = Field(
        default="https://api.digitalocean.com/v2",
        description="DigitalOcean API root",
    )

    # Droplet parameters
    droplet_size: str = Field(default="s-2vcpu-4gb", description="Droplet size slug")
    droplet_image: str = Field(default="moltbot", description="Droplet image slug")
    droplet_tag: str = Field(default="openclaw", description="Tag applied to new droplets")
    droplet_name_prefix: str = Field(default="openclaw", description="Prefix of droplet names")

    # Convergence polling
    poll_interval_seconds: float = Field(default=5.0, gt=0, description="Delay between polls")
    poll_max_attempts: int = Field(default=60, ge=1, description="Polls before giving up")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def ssh_key_ids(self) -> List[str]:
        return [key.strip() for key in self.do_ssh_key_ids.split(",") if key.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
