"""Product catalog loading and lookups.

The catalog is a JSON seed file loaded once into Product records. It is
reference data: nothing in the assistant writes to it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import StoreError
from .models import Product
from .utils import message_has_any_term, normalize_text

logger = logging.getLogger("shoebot.catalog")


@dataclass
class CatalogMeta:
    """Metadata describing the catalog file version for logging."""
    file_name: str
    updated_at: str
    sha256: str


class CatalogStore:
    def __init__(self, products: List[Product], meta: Optional[CatalogMeta] = None) -> None:
        self._products = list(products)
        self._by_id: Dict[str, Product] = {product.id: product for product in self._products}
        self.meta = meta

    @classmethod
    def from_file(cls, path: Path) -> "CatalogStore":
        """Purpose: Load and validate catalog data from a JSON file.
        Inputs/Outputs: Input is the file path; returns a CatalogStore.
        Side Effects / State: Reads file contents and computes hash/mtime.
        Dependencies: json, hashlib, and the Product model.
        Failure Modes: Missing/unreadable file or invalid JSON raises StoreError;
            individual invalid records are skipped with a warning.
        If Removed: The assistant has no products to match or sell.
        Testing Notes: Load the bundled products.json and check the product count.
        """
        # Read bytes for hashing, then parse and validate each record.
        try:
            raw_bytes = path.read_bytes()
            data = json.loads(raw_bytes.decode("utf-8-sig"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"could not load catalog {path}: {exc}") from exc

        records: List[Dict[str, Any]]
        if isinstance(data, dict):
            records = data.get("items", [])
        elif isinstance(data, list):
            records = data
        else:
            records = []

        products: List[Product] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                continue
            record = dict(record)
            record.setdefault("id", f"p{index + 1:03d}")
            try:
                products.append(Product(**record))
            except ValidationError as exc:
                logger.warning("catalog=%s skipped record=%s error=%s", path.name, index, exc.errors())

        meta = CatalogMeta(
            file_name=path.name,
            updated_at=datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            sha256=hashlib.sha256(raw_bytes).hexdigest(),
        )
        logger.info("catalog=%s products=%s sha256=%s", meta.file_name, len(products), meta.sha256[:12])
        return cls(products, meta)

    def list_all(self) -> List[Product]:
        return list(self._products)

    def names(self) -> List[str]:
        return [product.name for product in self._products]

    def get(self, product_id: str) -> Optional[Product]:
        return self._by_id.get(product_id)

    def find_by_name(self, name: Optional[str]) -> Optional[Product]:
        if not name:
            return None
        wanted = name.strip().lower()
        for product in self._products:
            if product.name.lower() == wanted:
                return product
        return None

    def find_by_name_match(self, pattern: str) -> Optional[Product]:
        """First product whose name matches pattern, case-insensitive."""
        regex = re.compile(pattern, re.IGNORECASE)
        for product in self._products:
            if regex.search(product.name):
                return product
        return None

    def list_by_category(self, category: str) -> List[Product]:
        wanted = category.strip().lower()
        return [product for product in self._products if product.category.lower() == wanted]

    def categories(self) -> List[str]:
        return sorted({product.category.lower() for product in self._products})

    def match_products(self, text: str, mentioned: Optional[str] = None) -> List[Product]:
        """Purpose: Pick the products a browsing message is about.
        Inputs/Outputs: Input is the user message and an optional extracted product
            name; output is the mentioned product or every product of the mentioned
            categories, else an empty list.
        Side Effects / State: None.
        Dependencies: normalize_text and message_has_any_term.
        Failure Modes: Category synonyms ("sneakers") are not recognised.
        If Removed: Browse replies carry no structured product data for the UI.
        Testing Notes: "show me running shoes" returns only running products.
        """
        # An explicit product beats a category mention.
        if mentioned:
            product = self.find_by_name(mentioned)
            if product:
                return [product]
        normalized = normalize_text(text)
        matched: List[Product] = []
        for category in self.categories():
            if message_has_any_term(normalized, {category}):
                matched.extend(self.list_by_category(category))
        return matched
