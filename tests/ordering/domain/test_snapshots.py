"""Tests for ProductSnapshot and AddressSnapshot value objects."""

import pytest
from ordering.catalogue.port import Product, Variant
from ordering.order.order import AddressSnapshot, ProductSnapshot
from protean.exceptions import ValidationError


def _snapshot(**overrides):
    data = {
        "product_id": "prod-1",
        "variant_id": "var-1",
        "sku": "SKU-1",
        "name": "Linen Tee",
        "price": 25.0,
    }
    data.update(overrides)
    return ProductSnapshot(**data)


def _address(**overrides):
    data = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_line1": "12 St James's Square",
        "city": "London",
        "state": "Greater London",
        "postal_code": "SW1Y 4JH",
        "country": "GB",
    }
    data.update(overrides)
    return AddressSnapshot(**data)


class TestProductSnapshot:
    def test_full_name_without_variant(self):
        assert _snapshot().full_name == "Linen Tee"

    def test_full_name_with_variant(self):
        assert _snapshot(variant_name="M / Sand").full_name == "Linen Tee - M / Sand"

    def test_blank_sku_rejected(self):
        with pytest.raises(ValidationError):
            _snapshot(sku="   ")

    def test_missing_name_rejected(self):
        with pytest.raises(ValidationError):
            _snapshot(name=None)

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            _snapshot(price=-0.01)

    def test_free_item_allowed(self):
        assert _snapshot(price=0.0).price == 0.0

    def test_from_catalogue_uses_catalogue_data(self):
        variant = Variant(
            variant_id="var-1",
            product_id="prod-1",
            sku="TEE-L",
            price=30.0,
            size="L",
            color="Sand",
            weight=0.3,
            length=70.0,
            width=50.0,
            height=2.0,
        )
        product = Product(product_id="prod-1", title="Linen Tee", image_url="https://img/tee.png")

        snapshot = ProductSnapshot.from_catalogue(variant, product)

        assert snapshot.sku == "TEE-L"
        assert snapshot.price == 30.0
        assert snapshot.full_name == "Linen Tee - L / Sand"
        assert snapshot.image_url == "https://img/tee.png"
        assert snapshot.attributes_dict == {"size": "L", "color": "Sand"}
        assert snapshot.has_dimensions

    def test_from_catalogue_without_options(self):
        variant = Variant(variant_id="var-2", product_id="prod-1", sku="TEE", price=20.0)
        product = Product(product_id="prod-1", title="Linen Tee")

        snapshot = ProductSnapshot.from_catalogue(variant, product)

        assert snapshot.variant_name is None
        assert snapshot.attributes_dict == {}
        assert not snapshot.has_dimensions


class TestAddressSnapshot:
    def test_full_name(self):
        assert _address().full_name == "Ada Lovelace"

    def test_optional_fields(self):
        address = _address(address_line2="Flat 2", phone="+44 20 0000 0000", email="ada@example.com")
        assert address.address_line2 == "Flat 2"

    @pytest.mark.parametrize("field", ["first_name", "city", "postal_code", "country"])
    def test_blank_required_field_rejected(self, field):
        with pytest.raises(ValidationError):
            _address(**{field: "  "})
