"""In-memory catalogue for development and testing."""

from ordering.catalogue.port import CatalogueLookup, Product, Variant


class InMemoryCatalogue(CatalogueLookup):
    def __init__(self) -> None:
        self.products: dict[str, Product] = {}
        self.variants: dict[str, Variant] = {}
        self.calls: list[dict] = []

    def add_product(self, product: Product) -> Product:
        self.products[product.product_id] = product
        return product

    def add_variant(self, variant: Variant) -> Variant:
        self.variants[variant.variant_id] = variant
        return variant

    def get_variant_by_id(self, variant_id: str) -> Variant | None:
        self.calls.append({"method": "get_variant_by_id", "variant_id": variant_id})
        return self.variants.get(variant_id)

    def get_product_by_id(self, product_id: str) -> Product | None:
        self.calls.append({"method": "get_product_by_id", "product_id": product_id})
        return self.products.get(product_id)
