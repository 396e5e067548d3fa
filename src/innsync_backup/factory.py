"""Gateway and service factory.

Resolves the active gateway profile from configuration and builds the
matching adapter and ``SnapshotService``.

Profile priority:
1. ``profile_name`` argument
2. ``{env_prefix}BACKUP_PROFILE`` env var (applied by the config loader)
3. ``[snapshot] active_profile`` in backup.toml
4. The only profile, when exactly one is configured
"""

from urllib.parse import quote

from innsync_backup.adapters.base import EntityGateway
from innsync_backup.adapters.postgres import AsyncPostgresAdapter
from innsync_backup.config.models import BackupConfig, GatewayProfile
from innsync_backup.snapshot.service import SnapshotService


class ProfileNotFoundError(Exception):
    """Raised when no usable gateway profile is configured."""

    pass


def resolve_profile(
    config: BackupConfig,
    profile_name: str | None = None,
) -> tuple[str, GatewayProfile]:
    """Pick the gateway profile to use.

    Raises:
        ProfileNotFoundError: If no profile is selected or the name is unknown.
    """
    name = profile_name or config.active_profile
    if name is None and len(config.profiles) == 1:
        name = next(iter(config.profiles))

    if name is None:
        raise ProfileNotFoundError(
            "No gateway profile selected.\n"
            "Set BACKUP_PROFILE or [snapshot] active_profile in backup.toml.\n"
            f"Available profiles: {', '.join(config.profiles) or 'none'}"
        )
    if name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in backup.toml.\n"
            f"Available profiles: {', '.join(config.profiles) or 'none'}"
        )
    return name, config.profiles[name]


def resolve_url(profile: GatewayProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> p = GatewayProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss")
        >>> resolve_url(p)
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_gateway(profile: GatewayProfile) -> EntityGateway:
    """Create the adapter for a profile.

    Raises:
        ValueError: Unknown provider, or Supabase profile without a key.
        ImportError: Supabase profile without the ``supabase`` extra.
    """
    if profile.provider == "postgres":
        return AsyncPostgresAdapter(resolve_url(profile), jsonb_columns=profile.jsonb_columns)
    if profile.provider == "supabase":
        if not profile.key:
            raise ValueError("Supabase profile requires 'key'")
        from innsync_backup.adapters.supabase import AsyncSupabaseAdapter

        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)
    raise ValueError(f"Unknown gateway provider '{profile.provider}'")


def create_service(
    config: BackupConfig,
    profile_name: str | None = None,
) -> SnapshotService:
    """Build a ``SnapshotService`` wired to the selected profile's gateway."""
    _, profile = resolve_profile(config, profile_name)
    return SnapshotService(get_gateway(profile), config)
