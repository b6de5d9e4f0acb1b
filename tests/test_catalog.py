from datetime import datetime, timedelta, timezone

from autoparts.database import Product, Category, SpecialOffer

from conftest import reload


def _new_product(client, **fields):
    payload = {"name": "Disque de frein", "barcode": "DF-001", "brand": "Brembo", "category": "Freinage",
               "buying_price": 2000, "selling_price": 2600, "current_quantity": 4, "min_quantity": 2}
    payload.update(fields)
    return client.post("/api/products/", json=payload)


def _iso(delta):
    return (datetime.now(timezone.utc) + delta).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def test_product_is_linked_to_existing_category_by_name(client, db):
    category = Category(name_fr="Freinage")
    db.add(category)
    db.commit()

    response = _new_product(client)

    assert response.status_code == 201
    body = response.json()
    assert body["category_id"] == category.id
    assert body["categoryName"] == "Freinage"


def test_product_with_unknown_category_keeps_the_label(client):
    body = _new_product(client, category="Éclairage").json()

    assert body["category_id"] is None
    assert body["category"] == "Éclairage"


def test_product_creation_checks(client):
    assert _new_product(client, category=None).status_code == 400
    assert _new_product(client, category_id=999, category=None).status_code == 400
    assert _new_product(client).status_code == 201
    assert _new_product(client, name="Autre").status_code == 400


def test_product_search_low_stock_and_update(client, db, make_product, supplier):
    low = make_product(name="Bougie NGK", current_quantity=1, min_quantity=3, supplier=supplier.id)
    make_product(name="Courroie", current_quantity=10, min_quantity=3)

    found = client.get("/api/products/", params={"search": "NGK"}).json()
    assert [p["id"] for p in found] == [low.id]
    assert found[0]["supplierName"] == supplier.name

    assert [p["id"] for p in client.get("/api/products/low-stock").json()] == [low.id]

    updated = client.put(f"/api/products/{low.id}", json={"current_quantity": 8})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Bougie NGK"
    assert client.put(f"/api/products/{low.id}", json={}).status_code == 400

    assert client.delete(f"/api/products/{low.id}").status_code == 200
    assert client.get(f"/api/products/{low.id}").status_code == 404


def test_category_lifecycle(client, db, make_product):
    created = client.post("/api/categories/", data={"nameFr": "Filtration", "nameAr": "مرشحات"})
    assert created.status_code == 201
    category_id = created.json()["id"]
    assert client.post("/api/categories/", data={"nameFr": "Filtration"}).status_code == 400

    product = make_product(category="Filtration")
    client.put(f"/api/products/{product.id}", json={"category_id": category_id})

    detail = client.get(f"/api/categories/{category_id}").json()
    assert [p["id"] for p in detail["products"]] == [product.id]

    client.put(f"/api/categories/{category_id}", data={"nameFr": "Filtres"})
    assert reload(db, Product, product.id).category == "Filtres"

    assert client.delete(f"/api/categories/{category_id}").status_code == 200
    product = reload(db, Product, product.id)
    assert product.category_id is None
    assert product.category is None


def test_category_products_are_counted(client, db, make_product):
    category_id = client.post("/api/categories/", data={"nameFr": "Huiles"}).json()["id"]
    product = make_product()

    entry = client.post("/api/category-products/", data={
        "categoryId": category_id, "productId": product.id, "nameFr": "Huile 5W30", "sellingPrice": "3200",
    })
    assert entry.status_code == 201

    listing = {c["id"]: c for c in client.get("/api/categories/").json()}
    assert listing[category_id]["productsCount"] == 1
    assert [p["id"] for p in client.get("/api/products/", params={"forCategory": category_id}).json()] == []
    assert client.post("/api/category-products/", data={"nameFr": "x"}).status_code == 400
    assert client.post("/api/category-products/", data={"categoryId": 999}).status_code == 404


def test_storefront_reads_categories_without_login(anon_client, db):
    db.add(Category(name_fr="Suspension"))
    db.commit()

    response = anon_client.get("/api/categories/")

    assert response.status_code == 200
    assert response.json()[0]["nameFr"] == "Suspension"
    assert anon_client.post("/api/categories/", data={"nameFr": "x"}).status_code == 401


def test_offer_activity_and_toggle(client):
    running = client.post("/api/special-offers/", json={"nameFr": "Promo été", "end_time": _iso(timedelta(days=3))}).json()
    client.post("/api/special-offers/", json={"nameFr": "Promo passée", "end_time": _iso(timedelta(days=-3))})

    assert [o["id"] for o in client.get("/api/special-offers/active").json()] == [running["id"]]

    toggled = client.patch(f"/api/special-offers/{running['id']}/toggle-status")
    assert toggled.json()["is_active"] is False
    assert client.get("/api/special-offers/active").json() == []
    assert len(client.get("/api/special-offers/").json()) == 2


def test_offer_requires_name_and_end(client):
    assert client.post("/api/special-offers/", json={"nameFr": "Sans fin"}).status_code == 400
    assert client.post("/api/special-offers/", json={"end_time": _iso(timedelta(days=1))}).status_code == 400


def test_offer_products(client, db, make_product):
    offer_id = client.post("/api/special-offers/", json={"nameFr": "Freinage -20%", "end_time": _iso(timedelta(days=7))}).json()["id"]
    product = make_product()

    added = client.post(f"/api/special-offers/{offer_id}/products", data={"product_id": product.id, "offer_price": "120"})
    assert added.status_code == 201
    assert client.post(f"/api/special-offers/{offer_id}/products", data={"product_id": product.id}).status_code == 400
    assert client.post(f"/api/special-offers/{offer_id}/products", data={"product_id": 999}).status_code == 404
    assert reload(db, SpecialOffer, offer_id).products_count == 1

    products = client.get(f"/api/special-offers/{offer_id}/products").json()
    assert products[0]["id"] == product.id
    assert products[0]["offer_price"] == 120

    client.put(f"/api/special-offers/{offer_id}/products/{product.id}", data={"offer_price": "110"})
    assert client.get(f"/api/special-offers/{offer_id}/products").json()[0]["offer_price"] == 110

    assert client.delete(f"/api/special-offers/{offer_id}/products/{product.id}").status_code == 200
    assert reload(db, SpecialOffer, offer_id).products_count == 0


def test_contacts_and_settings(client):
    saved = client.post("/api/contacts", json={"phone": "0555123456", "mapUrl": "https://maps.example/nasser"})
    assert saved.status_code == 200

    contacts = client.get("/api/contacts").json()
    assert contacts["phone"] == "0555123456"
    assert contacts["mapUrl"] == "https://maps.example/nasser"

    settings = client.put("/api/settings", data={"site_name_fr": "Nasser Auto Parts"})
    assert settings.status_code == 200
    assert client.get("/api/settings").json()["site_name_fr"] == "Nasser Auto Parts"


def test_storefront_reads_site_and_offers_without_login(anon_client, db):
    db.add(SpecialOffer(name="Promo", name_fr="Promo", end_time=_iso(timedelta(days=2)), is_active=True))
    db.commit()

    assert len(anon_client.get("/api/special-offers/active").json()) == 1
    assert anon_client.get("/api/contacts").json()["id"] == 1
    assert anon_client.get("/api/settings").json()["id"] == 1
    assert anon_client.post("/api/contacts", json={"phone": "x"}).status_code == 401
    assert anon_client.put("/api/settings", data={"site_name_fr": "x"}).status_code == 401
    assert anon_client.post("/api/special-offers/", json={"nameFr": "x", "end_time": "2030-01-01"}).status_code == 401
