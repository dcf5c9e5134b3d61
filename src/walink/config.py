"""Configuration management for walink."""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml


DEFAULT_CAPTION = (
    "SESSION FILE GENERATED\n\n"
    "Download this file and upload it to your bot deployment."
)


@dataclass
class PairingConfig:
    """Timing and delivery settings for one linking attempt."""

    deadline_seconds: float = 9.5  # platform ceiling minus safety margin
    settle_seconds: float = 1.0  # let the backend flush creds.json
    linger_seconds: float = 1.0  # keep the socket open after sending
    send_timeout_seconds: float = 15.0
    challenge_validity_seconds: float = 20.0
    caption: str = DEFAULT_CAPTION


@dataclass
class IdentityConfig:
    """Device/browser descriptor announced to WhatsApp."""

    platform: str = "macos"
    browser: str = "Desktop"
    version: str | None = None  # None = preset default for platform


@dataclass
class BackendConfig:
    """Pairing bridge connection settings."""

    url: str = "ws://127.0.0.1:8787/pair"
    connect_timeout_ms: int = 10000
    protocol_version: list[int] | None = None  # None = bridge picks latest


@dataclass
class PageConfig:
    """Rendered HTML page settings."""

    title: str = "Scan this QR Code Fast!"
    refresh_seconds: int = 10  # 0 disables the meta refresh
    qr_size: int = 300


@dataclass
class RateLimitConfig:
    """Per-client limit on started pairing attempts."""

    max_requests: int = 10
    window_seconds: int = 60


@dataclass
class Config:
    """walink configuration."""

    port: int = 8000
    bind_address: str = "0.0.0.0"
    log_level: str = "INFO"
    log_file: str | None = None
    storage_root: str = field(default_factory=tempfile.gettempdir)
    storage_prefix: str = "walink-"
    pairing: PairingConfig = field(default_factory=PairingConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    page: PageConfig = field(default_factory=PageConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "walink" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config section, treating empty or non-mapping values as absent."""
    section = data.get(name)
    return section if isinstance(section, dict) else {}


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config object with values from file or defaults.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader

    data = reader(config_path)

    if not isinstance(data, dict):
        return Config()

    # Parse pairing config section
    pairing_data = _section(data, "pairing")
    pairing_config = PairingConfig(
        deadline_seconds=pairing_data.get(
            "deadline_seconds", PairingConfig.deadline_seconds
        ),
        settle_seconds=pairing_data.get("settle_seconds", PairingConfig.settle_seconds),
        linger_seconds=pairing_data.get("linger_seconds", PairingConfig.linger_seconds),
        send_timeout_seconds=pairing_data.get(
            "send_timeout_seconds", PairingConfig.send_timeout_seconds
        ),
        challenge_validity_seconds=pairing_data.get(
            "challenge_validity_seconds", PairingConfig.challenge_validity_seconds
        ),
        caption=pairing_data.get("caption", PairingConfig.caption),
    )

    # Parse identity config section
    identity_data = _section(data, "identity")
    identity_config = IdentityConfig(
        platform=identity_data.get("platform", IdentityConfig.platform),
        browser=identity_data.get("browser", IdentityConfig.browser),
        version=identity_data.get("version", IdentityConfig.version),
    )

    # Parse backend config section
    backend_data = _section(data, "backend")
    backend_config = BackendConfig(
        url=backend_data.get("url", BackendConfig.url),
        connect_timeout_ms=backend_data.get(
            "connect_timeout_ms", BackendConfig.connect_timeout_ms
        ),
        protocol_version=backend_data.get(
            "protocol_version", BackendConfig.protocol_version
        ),
    )

    # Parse page config section
    page_data = _section(data, "page")
    page_config = PageConfig(
        title=page_data.get("title", PageConfig.title),
        refresh_seconds=page_data.get("refresh_seconds", PageConfig.refresh_seconds),
        qr_size=page_data.get("qr_size", PageConfig.qr_size),
    )

    # Parse rate_limit config section
    rate_limit_data = _section(data, "rate_limit")
    rate_limit_config = RateLimitConfig(
        max_requests=rate_limit_data.get("max_requests", RateLimitConfig.max_requests),
        window_seconds=rate_limit_data.get(
            "window_seconds", RateLimitConfig.window_seconds
        ),
    )

    return Config(
        port=data.get("port", Config.port),
        bind_address=data.get("bind_address", Config.bind_address),
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
        storage_root=data.get("storage_root") or tempfile.gettempdir(),
        storage_prefix=data.get("storage_prefix", Config.storage_prefix),
        pairing=pairing_config,
        identity=identity_config,
        backend=backend_config,
        page=page_config,
        rate_limit=rate_limit_config,
    )
