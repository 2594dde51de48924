"""Fallback Datasets - Bundled static pools used when the remote tier fails."""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

from ..models.enums import Category, PoolType
from .schemas import ParseResult, parse_pool

logger = logging.getLogger(__name__)

DATA_PACKAGE = "chemdrill.data"


class FallbackDatasets:
    """Static CSV datasets laid out as ``<root>/<category>/<pool_type>.csv``.

    By default reads the files shipped inside the package; pass ``root``
    to read from a directory instead.

    Example:
        >>> fallback = FallbackDatasets()
        >>> result = fallback.load("inorganic", "inorganic-new")
        >>> len(result.records)
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else None

    def _read(self, category: Category, pool_type: PoolType) -> str | None:
        name = f"{pool_type.value}.csv"
        try:
            if self.root is not None:
                return (self.root / category.value / name).read_text(encoding="utf-8")
            resource = resources.files(DATA_PACKAGE).joinpath(category.value).joinpath(name)
            return resource.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError):
            return None

    def has(self, category: Category | str, pool_type: PoolType | str) -> bool:
        return self._read(Category(category), PoolType(pool_type)) is not None

    def load(self, category: Category | str, pool_type: PoolType | str) -> ParseResult | None:
        """Parse the bundled dataset, or None when none is shipped."""
        category, pool_type = Category(category), PoolType(pool_type)
        text = self._read(category, pool_type)
        if text is None:
            logger.debug(f"No bundled dataset for {category.value}/{pool_type.value}")
            return None
        result = parse_pool(text, pool_type)
        logger.info(f"Bundled dataset {category.value}/{pool_type.value}: {len(result.records)} records")
        return result
