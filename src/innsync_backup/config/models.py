"""Pydantic models for gateway profiles and snapshot configuration."""

from pydantic import BaseModel, Field

DEFAULT_MAX_SNAPSHOT_BYTES = 50 * 1024 * 1024  # 50MB


class GatewayProfile(BaseModel):
    """Entity gateway connection profile from backup.toml."""

    url: str
    provider: str = "postgres"  # postgres | supabase
    key: str | None = None  # Supabase API key
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    description: str = ""
    jsonb_columns: list[str] = Field(default_factory=list)


class BackupConfig(BaseModel):
    """Complete snapshot subsystem configuration from backup.toml."""

    profiles: dict[str, GatewayProfile] = Field(default_factory=dict)
    active_profile: str | None = None

    # Snapshot
    product_name: str = "innsync"
    format_version: str = "1.0"
    max_snapshot_bytes: int = Field(default=DEFAULT_MAX_SNAPSHOT_BYTES, gt=0)
    gateway_timeout_seconds: float | None = 30.0
    restore_batch_size: int = Field(default=500, gt=0)

    # History ledger
    history_path: str | None = None  # None keeps history in memory
    history_max_entries: int = Field(default=50, gt=0)
    history_max_age_days: int = Field(default=30, ge=0)
