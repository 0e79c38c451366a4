import pytest

from carryluxe.catalog import CatalogService
from carryluxe.errors import NotFoundError
from carryluxe.store import PRODUCTS, JsonFileRecordStore


@pytest.fixture
def store(tmp_path):
    store = JsonFileRecordStore(str(tmp_path / "data"), seed_catalog=False)
    store.put(PRODUCTS, {"id": 1, "brand": "Chanel", "name": "Flap", "price": 10200, "status": "active"})
    store.put(PRODUCTS, {"id": 2, "brand": "Dior", "name": "Lady Dior", "price": 5900, "status": "hidden"})
    store.put(PRODUCTS, {"id": 3, "brand": "chanel", "name": "Boy", "price": 6100})
    return store


def test_list_active_skips_hidden_and_keeps_legacy_records(store):
    products = CatalogService(store).list_active()

    assert [p["id"] for p in products] == [3, 1]


def test_list_active_brand_filter_is_case_insensitive(store):
    products = CatalogService(store).list_active("CHANEL")

    assert {p["name"] for p in products} == {"Flap", "Boy"}
    assert CatalogService(store).list_active("dior") == []


def test_get_by_id_accepts_numeric_strings(store):
    assert CatalogService(store).get_by_id("1")["name"] == "Flap"


def test_get_by_id_accepts_integral_floats(store):
    assert CatalogService(store).get_by_id(1.0)["name"] == "Flap"


@pytest.mark.parametrize("product_id", ["999", "abc", None, 1.5, True])
def test_get_by_id_missing(store, product_id):
    with pytest.raises(NotFoundError):
        CatalogService(store).get_by_id(product_id)


def test_hidden_product_visible_by_direct_link_by_default(store):
    assert CatalogService(store).get_by_id(2)["status"] == "hidden"


def test_hidden_product_detail_can_be_turned_off(store):
    with pytest.raises(NotFoundError):
        CatalogService(store, show_hidden_detail=False).get_by_id(2)


def test_public_listing_endpoint(client, create_product):
    create_product(brand="Hermès", name="Birkin 30", price=12500)
    create_product(brand="Gucci", name="Jackie", price=2950, status="hidden")

    response = client.get("/api/products")

    assert response.status_code == 200
    assert [p["name"] for p in response.get_json()] == ["Birkin 30"]
    assert response.headers["Cache-Control"].startswith("no-store")


def test_public_listing_brand_query(client, create_product):
    create_product(brand="Hermès", name="Birkin 30")
    create_product(brand="Gucci", name="Jackie")

    response = client.get("/api/products?brand=gucci")

    assert [p["name"] for p in response.get_json()] == ["Jackie"]


def test_product_detail_endpoint(client, create_product):
    product = create_product(brand="Acme", name="Bag", price=100)

    response = client.get(f"/api/products/{product['id']}")

    assert response.status_code == 200
    body = response.get_json()
    assert (body["brand"], body["name"], body["price"], body["status"]) == ("Acme", "Bag", 100, "active")


def test_product_detail_not_found(client):
    response = client.get("/api/products/424242")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Not found"}
