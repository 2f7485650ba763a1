"""
Tier catalog loader + validator with JSON Schema validation
"""

import json
from pathlib import Path
from typing import Optional

from jsonschema import ValidationError as JsonSchemaValidationError
from jsonschema import validate
from pydantic import ValidationError as PydanticValidationError

from plk_api.config.env import get_tier_catalog_path, get_tier_catalog_schema_path
from .catalog import TierCatalog
from .exceptions import CatalogError
from .models import TierCatalogModel

FIXTURES_DIR = Path(__file__).parent / "fixtures"
DEFAULT_CATALOG_PATH = FIXTURES_DIR / "tier_catalog.json"
DEFAULT_SCHEMA_PATH = FIXTURES_DIR / "tier_catalog_schema.json"


class CatalogLoader:
    """
    Load and validate the tier catalog JSON against its JSON Schema
    """

    def __init__(self, catalog_path: Path, schema_path: Path):
        self.catalog_path = catalog_path
        self.schema_path = schema_path
        self._catalog: Optional[TierCatalog] = None

    def load(self) -> TierCatalog:
        """
        Load catalog JSON, validate it against the JSON Schema and the model rules

        Raises:
            CatalogError: File missing, unreadable JSON, schema or model validation failed
        """

        # 1. Load JSON Schema and catalog document
        schema = self._read_json(self.schema_path)
        catalog_json = self._read_json(self.catalog_path)

        # 2. Validate against JSON Schema
        try:
            validate(instance=catalog_json, schema=schema)
        except JsonSchemaValidationError as e:
            raise CatalogError(f"JSON Schema validation failed: {e.message}") from e

        # 3. Parse into Pydantic model (cross-field rules: coverage, fee monotonicity)
        try:
            model = TierCatalogModel(**catalog_json)
        except PydanticValidationError as e:
            raise CatalogError(f"Tier catalog validation failed: {e}") from e

        self._catalog = TierCatalog(model)
        return self._catalog

    def get_catalog(self) -> TierCatalog:
        """Get loaded catalog (cached)"""
        if self._catalog is None:
            raise RuntimeError("Tier catalog not loaded. Call load() first.")
        return self._catalog

    @staticmethod
    def _read_json(path: Path) -> dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise CatalogError(f"Tier catalog file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Tier catalog file is not valid JSON: {path} ({e.msg})") from e


# Singleton instance
_catalog_loader: Optional[CatalogLoader] = None


def get_catalog_loader() -> CatalogLoader:
    """Get singleton catalog loader instance (paths from environment or packaged fixtures)"""
    global _catalog_loader
    if _catalog_loader is None:
        catalog_path = get_tier_catalog_path() or DEFAULT_CATALOG_PATH
        schema_path = get_tier_catalog_schema_path() or DEFAULT_SCHEMA_PATH
        _catalog_loader = CatalogLoader(Path(catalog_path), Path(schema_path))
    return _catalog_loader


def reset_catalog_loader() -> None:
    """Drop the singleton loader (for testing)."""
    global _catalog_loader
    _catalog_loader = None


def load_tier_catalog() -> TierCatalog:
    """Convenience function to load the tier catalog"""
    loader = get_catalog_loader()
    return loader.load()

