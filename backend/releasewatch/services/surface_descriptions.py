"""Canonical surface descriptions.

Client versions have described the same device family under many names. The
translation table lives in ``data/surface_descriptions.json`` so it can be
versioned and extended without touching code. Lookups are exact and fall back
to the reported description.
"""

import json
import logging
from functools import lru_cache
from importlib import resources
from typing import Mapping

logger = logging.getLogger(__name__)

TABLE_RESOURCE = "surface_descriptions.json"


@lru_cache(maxsize=1)
def load_description_table() -> Mapping[str, str]:
    """Load the translation table shipped with the package."""
    raw = resources.files("releasewatch.data").joinpath(TABLE_RESOURCE).read_text(encoding="utf-8")
    data = json.loads(raw)
    table = data.get("descriptions", {})
    logger.debug(f"Loaded {len(table)} surface descriptions (table v{data.get('version')})")
    return table


def canonical_description(description: str) -> str:
    """Return the canonical label for a reported description."""
    return load_description_table().get(description, description)
