"""
apimock Configuration

Engine and server options, loadable from a dict or a YAML file.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict

import yaml


# camelCase option names accepted alongside the snake_case field names
_ALIASES = {
    'passThroughUnknownUrl': 'pass_through_unknown_url',
    'passThruUnknownUrl': 'pass_through_unknown_url',
    'cacheFromExternalStorage': 'cache_from_external_storage',
    'cacheFromLocalStorage': 'cache_from_external_storage',
    'externalStorageKey': 'external_storage_key',
    'localStorageKey': 'external_storage_key',
    'responseDelayMs': 'response_delay_ms',
    'delay': 'response_delay_ms',
    'postUpdate204': 'post_update_204',
    'postUpdate409': 'post_update_409',
    'putUpdate204': 'put_update_204',
    'putUpdate404': 'put_update_404',
    'patchUpdate204': 'patch_update_204',
    'deleteNotFound404': 'delete_not_found_404',
    'showLog': 'show_log',
    'logLevel': 'log_level',
    'adminEnabled': 'admin_enabled',
    'adminPrefix': 'admin_prefix',
}


@dataclass
class ApiMockConfig:
    """Configuration for mock engine behavior."""

    # Request resolution
    pass_through_unknown_url: bool = False  # Forward unmatched URLs instead of 404

    # External persistence
    cache_from_external_storage: bool = False
    external_storage_key: str = "apiMockCachedData"

    # Simulated latency
    response_delay_ms: int = 500

    # Status code policies
    post_update_204: bool = True  # POST over existing id: 204 instead of 200 with item
    post_update_409: bool = False  # POST over existing id: 409 instead of update
    put_update_204: bool = True
    put_update_404: bool = True  # PUT on missing id: 404 instead of create
    patch_update_204: bool = True
    delete_not_found_404: bool = True  # DELETE on missing id: 404 instead of 204

    # Logging
    show_log: bool = True
    log_level: str = "info"

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApiMockConfig':
        """Create config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            name = _ALIASES.get(key, key)
            if name in known:
                values[name] = value
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ApiMockConfig':
        """Load config from YAML file."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    def update(self, data: Dict[str, Any]) -> None:
        """Apply known options from a dictionary in place."""
        updated = self.from_dict(data)
        for key in data:
            name = _ALIASES.get(key, key)
            if hasattr(updated, name):
                setattr(self, name, getattr(updated, name))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
