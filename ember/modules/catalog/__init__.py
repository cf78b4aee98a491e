"""Static game tables built once from YAML and validated for referential integrity."""

from ember.modules.catalog.catalog import CatalogRules, GameCatalog
from ember.modules.catalog.loader import load_catalog, load_rules

__all__ = ["CatalogRules", "GameCatalog", "load_catalog", "load_rules"]
