"""Configuration loading for teamsync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class SiteConfig:
    id: int = 0
    name: str = ""


@dataclass
class APIConfig:
    base_url: str = "https://public-api.wordpress.com/rest/v1.1"
    token: str | None = None
    timeout_seconds: float = 30.0
    team_size: int = 100


@dataclass
class StoreConfig:
    """Configuration for the local people store."""

    db_path: str = "~/.teamsync/people.db"


@dataclass
class SyncConfig:
    """Configuration for team refresh and role updates."""

    guard_superseded_rollbacks: bool = True
    """Keep a failed role update from reverting a newer update's role"""


@dataclass
class Config:
    site: SiteConfig = field(default_factory=SiteConfig)
    api: APIConfig = field(default_factory=APIConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with TEAMSYNC_ prefix."""
    return os.environ.get(f"TEAMSYNC_{key}", default)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Site overrides
    if site_id := _get_env("SITE_ID"):
        config.site.id = int(site_id)
    if site_name := _get_env("SITE_NAME"):
        config.site.name = site_name

    # API overrides
    if base_url := _get_env("API_BASE_URL"):
        config.api.base_url = base_url
    if token := _get_env("API_TOKEN"):
        config.api.token = token
    if timeout := _get_env("API_TIMEOUT"):
        config.api.timeout_seconds = float(timeout)

    # Store overrides
    if db_path := _get_env("STORE_DB_PATH"):
        config.store.db_path = db_path

    # Sync overrides
    if guard := _get_env("GUARD_SUPERSEDED_ROLLBACKS"):
        config.sync.guard_superseded_rollbacks = _parse_bool(guard)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse site config
            if "site" in data:
                site_data = data["site"]
                config.site = SiteConfig(
                    id=int(site_data.get("id") or config.site.id),
                    name=site_data.get("name") or config.site.name,
                )

            # Parse API config
            if "api" in data:
                api_data = data["api"]
                config.api = APIConfig(
                    base_url=api_data.get("base_url", config.api.base_url),
                    token=api_data.get("token", config.api.token),
                    timeout_seconds=float(
                        api_data.get("timeout_seconds", config.api.timeout_seconds)
                    ),
                    team_size=int(api_data.get("team_size", config.api.team_size)),
                )

            # Parse store config
            if "store" in data:
                config.store = StoreConfig(
                    db_path=data["store"].get("db_path", config.store.db_path)
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    guard_superseded_rollbacks=_parse_bool(
                        sync_data.get(
                            "guard_superseded_rollbacks",
                            config.sync.guard_superseded_rollbacks,
                        )
                    ),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
