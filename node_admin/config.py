#node_admin\config.py

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeAdminSettings(BaseSettings):
    """Node admin configuration from environment variables (NODE_ADMIN_*)."""

    model_config = SettingsConfigDict(
        env_prefix="NODE_ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Host identity (NO DEFAULT)
    host_hostname: str

    # Node repository
    node_repository_url: str = "http://localhost:4080"
    repository_timeout: float = Field(default=10.0, gt=0)

    # Container runtime
    docker_base_url: str = ""  # Empty: use DOCKER_HOST / local socket
    runtime_timeout: int = Field(default=60, gt=0)
    container_stop_timeout: int = Field(default=10, ge=0)

    # Storage
    storage_root: Path = Path("/var/lib/node-admin/storage")
    archive_root: Path = Path("/var/lib/node-admin/archive")
    archive_retention_days: int = Field(default=7, ge=0)

    # Host capacity
    host_vcpus: float = Field(default=8.0, gt=0)
    host_memory_gb: float = Field(default=32.0, gt=0)
    host_disk_gb: float = Field(default=500.0, gt=0)

    # Scheduling
    tick_interval: float = Field(default=30.0, gt=0)
    tick_jitter: float = Field(default=0.2, ge=0, lt=1)
    backoff_initial: float = Field(default=10.0, gt=0)
    backoff_multiplier: float = Field(default=3.0, ge=1)
    backoff_max: float = Field(default=300.0, gt=0)
    refresh_interval: float = Field(default=60.0, gt=0)
    full_reconcile_every: int = Field(default=10, ge=1)

    # Operator API
    api_host: str = "127.0.0.1"
    api_port: int = 8090

    log_level: str = "INFO"


@lru_cache
def get_settings() -> NodeAdminSettings:
    return NodeAdminSettings()
