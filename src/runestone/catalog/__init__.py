"""
Directive catalog for Runestone.

The catalog is the full inventory of directive units (agents, skills,
rules, workflow steps) with their triggers, dependencies, priority tiers
and deprecation links. It is loaded and validated once, then shared
read-only by every resolution call.
"""

from runestone.catalog.catalog import Catalog, CatalogHandle, load
from runestone.catalog.discovery import (
    find_catalog,
    get_catalog_search_paths,
    get_global_catalog_path,
)
from runestone.catalog.loader import CatalogLoader, LoadResult, fingerprint
from runestone.catalog.unit import (
    UNIT_KINDS,
    DirectiveUnit,
    PriorityTier,
    Triggers,
    tier_label,
)
from runestone.catalog.validation import validate

__all__ = [
    # Model
    "DirectiveUnit",
    "PriorityTier",
    "Triggers",
    "UNIT_KINDS",
    "tier_label",
    # Loading
    "Catalog",
    "CatalogHandle",
    "CatalogLoader",
    "LoadResult",
    "fingerprint",
    "load",
    "validate",
    # Discovery
    "find_catalog",
    "get_catalog_search_paths",
    "get_global_catalog_path",
]
