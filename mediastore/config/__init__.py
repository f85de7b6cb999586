"""
Application configuration.

Settings come from environment variables via Pydantic; the adapter's own
configuration is resolved from those settings plus environment overrides.
"""

from .adapter import AdapterConfig, default_asset_host, resolve_adapter_config
from .settings import Settings, get_adapter_config, get_settings

__all__ = [
    "AdapterConfig",
    "Settings",
    "default_asset_host",
    "get_adapter_config",
    "get_settings",
    "resolve_adapter_config",
]
