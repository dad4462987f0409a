import pytest
from ordering.catalogue import set_catalogue
from ordering.catalogue.fake_adapter import InMemoryCatalogue
from ordering.catalogue.port import Product, Variant
from ordering.config import OrderingSettings
from ordering.inventory import set_inventory
from ordering.inventory.fake_adapter import InMemoryInventory
from ordering.inventory.port import Location
from ordering.order.management import OrderManagementService
from protean.integrations.pytest import DomainFixture

WAREHOUSE = "wh-main"
STORE = "store-soho"


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture()
def catalogue():
    """Two products with three variants between them, installed as the active catalogue."""
    cat = InMemoryCatalogue()
    cat.add_product(Product(product_id="prod-tee", title="Linen Tee", image_url="https://img/tee.png"))
    cat.add_product(Product(product_id="prod-jeans", title="Slim Jeans"))
    cat.add_variant(Variant(variant_id="var-tee-m", product_id="prod-tee", sku="TEE-M", price=25.0, size="M"))
    cat.add_variant(
        Variant(
            variant_id="var-tee-l",
            product_id="prod-tee",
            sku="TEE-L",
            price=25.0,
            size="L",
            color="Sand",
            weight=0.3,
        )
    )
    cat.add_variant(Variant(variant_id="var-jeans", product_id="prod-jeans", sku="JEANS-32", price=80.0))
    set_catalogue(cat)
    return cat


@pytest.fixture()
def inventory():
    """A warehouse and a store, each stocked with 10 units of every variant."""
    inv = InMemoryInventory()
    inv.add_location(Location(location_id=STORE, name="Soho Store", location_type="store"))
    inv.add_location(Location(location_id=WAREHOUSE, name="Main Warehouse", location_type="warehouse"))
    for variant_id in ("var-tee-m", "var-tee-l", "var-jeans"):
        inv.set_stock(variant_id, WAREHOUSE, on_hand=10)
        inv.set_stock(variant_id, STORE, on_hand=10)
    set_inventory(inv)
    return inv


@pytest.fixture()
def service(catalogue, inventory):
    return OrderManagementService(catalogue, inventory, OrderingSettings(default_stock_location=WAREHOUSE))
