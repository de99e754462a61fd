"""
Configuration management for item tracker stores.

The configuration is stored as a TOML file in the store directory.
It names the remote ledger and the intent classification service, both
optional. Environment variables override the file.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

CONFIG_FILENAME = "itemkeeper.toml"
CONFIG_VERSION = 1

DEFAULT_STORE_DIR = ".itemkeeper"


@dataclass
class RemoteConfig:
    """Remote ledger connection (PostgREST endpoint)."""
    url: str
    api_key: str
    owner_id: Optional[str] = None
    access_token: Optional[str] = None


@dataclass
class IntentConfig:
    """External intent classification service."""
    url: str
    api_key: Optional[str] = None


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    remote: Optional[RemoteConfig] = None
    intent: Optional[IntentConfig] = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        """Path to the local key-value database."""
        return self.path / "itemkeeper.db"

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """Store directory: ITEMKEEPER_STORE_PATH, else ~/.itemkeeper."""
    env = os.environ.get("ITEMKEEPER_STORE_PATH")
    if env:
        return Path(env).expanduser()
    return Path.home() / DEFAULT_STORE_DIR


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    remote = None
    remote_data = data.get("remote")
    if remote_data:
        if not remote_data.get("url") or not remote_data.get("api_key"):
            raise ValueError("[remote] requires both 'url' and 'api_key'")
        remote = RemoteConfig(
            url=remote_data["url"],
            api_key=remote_data["api_key"],
            owner_id=remote_data.get("owner_id"),
            access_token=remote_data.get("access_token"),
        )

    intent = None
    intent_data = data.get("intent")
    if intent_data and intent_data.get("url"):
        intent = IntentConfig(url=intent_data["url"], api_key=intent_data.get("api_key"))

    return StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        remote=remote,
        intent=intent,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data: dict = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
    }
    if config.remote:
        remote = {"url": config.remote.url, "api_key": config.remote.api_key}
        if config.remote.owner_id:
            remote["owner_id"] = config.remote.owner_id
        if config.remote.access_token:
            remote["access_token"] = config.remote.access_token
        data["remote"] = remote
    if config.intent:
        intent = {"url": config.intent.url}
        if config.intent.api_key:
            intent["api_key"] = config.intent.api_key
        data["intent"] = intent

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def apply_env_overrides(config: StoreConfig) -> StoreConfig:
    """Overlay ITEMKEEPER_* environment variables onto a loaded config."""
    url = os.environ.get("ITEMKEEPER_REMOTE_URL")
    key = os.environ.get("ITEMKEEPER_REMOTE_KEY")
    owner = os.environ.get("ITEMKEEPER_OWNER")
    if url and key:
        config.remote = RemoteConfig(
            url=url,
            api_key=key,
            owner_id=owner or (config.remote.owner_id if config.remote else None),
            access_token=os.environ.get("ITEMKEEPER_ACCESS_TOKEN"),
        )
    elif owner and config.remote:
        config.remote.owner_id = owner

    intent_url = os.environ.get("ITEMKEEPER_INTENT_URL")
    if intent_url:
        config.intent = IntentConfig(
            url=intent_url,
            api_key=os.environ.get("ITEMKEEPER_INTENT_KEY"),
        )
    return config


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (store_path / CONFIG_FILENAME).exists():
        config = load_config(store_path)
    else:
        config = StoreConfig(path=store_path)
        save_config(config)
    return apply_env_overrides(config)
