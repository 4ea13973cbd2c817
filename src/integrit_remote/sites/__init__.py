"""Site registry and naming convention."""

from .registry import (
    CONFIG_SUFFIX,
    SiteConfig,
    SiteListing,
    SiteRegistry,
    SiteState,
    config_name,
    current_db_name,
    known_db_name,
    resolve_host,
    validate_site_name,
)

__all__ = [
    "CONFIG_SUFFIX",
    "SiteConfig",
    "SiteListing",
    "SiteRegistry",
    "SiteState",
    "config_name",
    "current_db_name",
    "known_db_name",
    "resolve_host",
    "validate_site_name",
]
