"""Catalogue lookup port (abstract interface).

Orders never trust client-supplied product data. Every line is resolved
through this port so that names, SKUs and prices come from the catalogue.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Variant:
    """A sellable variant as the catalogue currently describes it."""

    variant_id: str
    product_id: str
    sku: str
    price: float
    size: str | None = None
    color: str | None = None
    image_url: str | None = None
    weight: float | None = None
    length: float | None = None
    width: float | None = None
    height: float | None = None

    @property
    def display_name(self) -> str | None:
        return " / ".join(part for part in (self.size, self.color) if part) or None


@dataclass(frozen=True)
class Product:
    product_id: str
    title: str
    image_url: str | None = None


class CatalogueLookup(ABC):
    """Read-only access to products and variants."""

    @abstractmethod
    def get_variant_by_id(self, variant_id: str) -> Variant | None:
        """Return the variant, or None when the catalogue does not know it."""
        ...

    @abstractmethod
    def get_product_by_id(self, product_id: str) -> Product | None:
        """Return the product, or None when the catalogue does not know it."""
        ...
