"""Data source factory.

Resolves a connection profile from db.toml and builds the
``SqlAlchemyDataSource`` a snapshot reads from.

Profile selection priority:
1. Explicit ``profile_name`` argument
2. ``DB_SNAPSHOT_PROFILE`` env var
3. Raise ``ProfileNotFoundError``
"""

import os
from pathlib import Path
from urllib.parse import quote

from db_snapshot.adapters.sql import SqlAlchemyDataSource
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile

PROFILE_ENV_VAR = "DB_SNAPSHOT_PROFILE"
PASSWORD_PLACEHOLDER = "[YOUR-PASSWORD]"


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured or it does not exist."""

    pass


def get_active_profile_name(profile_name: str | None = None) -> str:
    """Get the profile name from the argument or the environment.

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if profile_name:
        return profile_name

    env_profile = os.environ.get(PROFILE_ENV_VAR)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile selected.\n"
        f"Pass --profile <name> or set {PROFILE_ENV_VAR}=<name>."
    )


def get_profile(
    profile_name: str | None = None,
    config: DatabaseConfig | None = None,
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get the active profile name and its configuration.

    Raises:
        ProfileNotFoundError: If no profile is selected or it is not in db.toml
        FileNotFoundError: If *config* is not given and db.toml is missing
    """
    name = get_active_profile_name(profile_name)
    if config is None:
        config = load_db_config(config_path)

    if name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in db.toml.\nAvailable profiles: {available}"
        )
    return name, config.profiles[name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and PASSWORD_PLACEHOLDER in url:
        url = url.replace(PASSWORD_PLACEHOLDER, quote(profile.db_password, safe=""))
    return url


def get_data_source(
    profile_name: str | None = None,
    config: DatabaseConfig | None = None,
    config_path: Path | None = None,
) -> SqlAlchemyDataSource:
    """Build a data source for a configured profile.

    Args:
        profile_name: Profile from db.toml.  If None, uses the
            ``DB_SNAPSHOT_PROFILE`` env var.
        config: Already loaded configuration.
        config_path: db.toml location when *config* is not given.

    Raises:
        ProfileNotFoundError: If the profile cannot be resolved
    """
    _, profile = get_profile(profile_name, config, config_path)
    return SqlAlchemyDataSource(
        resolve_url(profile),
        schema_name=profile.schema_name,
        requires_sorted_columns=profile.sorted_columns,
    )
