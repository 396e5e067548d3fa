"""Configuration management: gateway profiles, TOML loading, and config models.

Usage:
    >>> from innsync_backup.config import load_backup_config, BackupConfig, GatewayProfile
"""

from innsync_backup.config.loader import load_backup_config
from innsync_backup.config.models import BackupConfig, GatewayProfile

__all__ = ["load_backup_config", "BackupConfig", "GatewayProfile"]
