"""TOML configuration loading for db-snapshot."""

import tomllib
from pathlib import Path

from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SkipRulesConfig


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ./db.toml)

    Returns:
        DatabaseConfig with all profiles and skip rules

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create db.toml with a [profiles.<name>] table for each database."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    # Parse skip rules
    skip = SkipRulesConfig(**data.get("skip", {}))

    return DatabaseConfig(profiles=profiles, skip=skip)
