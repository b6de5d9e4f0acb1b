import pytest

from autoparts.database import Product, Order, OrderItem

from conftest import reload


def _order_payload(*items, **extra):
    payload = {
        "client_name": "Yacine B.",
        "client_phone": "0661000000",
        "wilaya": "Oran",
        "address": "12 rue des Oliviers",
        "items": list(items),
    }
    payload.update(extra)
    return payload


def _line(product, quantity, price=150):
    return {
        "product_id": product.id,
        "product_name": product.name,
        "quantity": quantity,
        "price": price,
        "total": price * quantity,
    }


def test_order_total_is_sum_of_lines(client, make_product):
    first = make_product()
    second = make_product()

    response = client.post("/api/orders/", json=_order_payload(_line(first, 2), _line(second, 1, price=80)))

    assert response.status_code == 201
    body = response.json()
    assert body["total"] == 380
    assert body["status"] == "pending"
    assert body["payment_method"] == "cod"
    assert len(body["items"]) == 2


@pytest.mark.parametrize("missing", ["client_name", "wilaya", "address"])
def test_order_requires_delivery_fields(client, db, make_product, missing):
    product = make_product()
    payload = _order_payload(_line(product, 1))
    del payload[missing]

    assert client.post("/api/orders/", json=payload).status_code == 400
    assert db.query(Order).count() == 0


def test_order_requires_items(client):
    assert client.post("/api/orders/", json=_order_payload()).status_code == 400


def test_completing_an_order_takes_items_out_of_stock(client, db, make_product):
    stocked = make_product(current_quantity=5)
    empty = make_product(current_quantity=0)
    order = client.post("/api/orders/", json=_order_payload(_line(stocked, 2), _line(empty, 1))).json()

    response = client.put(f"/api/orders/{order['id']}/status", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert reload(db, Product, stocked.id).current_quantity == 3
    assert reload(db, Product, empty.id).current_quantity == 0


def test_other_statuses_leave_stock_untouched(client, db, make_product):
    product = make_product(current_quantity=5)
    order = client.post("/api/orders/", json=_order_payload(_line(product, 2))).json()

    client.put(f"/api/orders/{order['id']}/status", json={"status": "confirmed"})
    client.put(f"/api/orders/{order['id']}/status", json={"status": "shipped"})

    assert reload(db, Product, product.id).current_quantity == 5
    assert reload(db, Order, order["id"]).status == "shipped"


def test_status_change_validation(client, make_product):
    product = make_product()
    order = client.post("/api/orders/", json=_order_payload(_line(product, 1))).json()

    assert client.put(f"/api/orders/{order['id']}/status", json={}).status_code == 400
    assert client.put("/api/orders/999/status", json={"status": "completed"}).status_code == 404


def test_delete_order_removes_its_items(client, db, make_product):
    product = make_product()
    order = client.post("/api/orders/", json=_order_payload(_line(product, 1))).json()

    response = client.delete(f"/api/orders/{order['id']}")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    db.expire_all()
    assert db.get(Order, order["id"]) is None
    assert db.query(OrderItem).count() == 0
    assert client.delete(f"/api/orders/{order['id']}").status_code == 404


def test_storefront_can_order_without_login(anon_client, make_product):
    product = make_product()

    created = anon_client.post("/api/orders/", json=_order_payload(_line(product, 1)))

    assert created.status_code == 201
    assert anon_client.get("/api/orders/").status_code == 401
    assert anon_client.put(f"/api/orders/{created.json()['id']}/status", json={"status": "completed"}).status_code == 401


def test_list_and_get_orders(client, make_product):
    product = make_product()
    order = client.post("/api/orders/", json=_order_payload(_line(product, 1))).json()

    assert [o["id"] for o in client.get("/api/orders/").json()] == [order["id"]]
    assert client.get(f"/api/orders/{order['id']}").json()["items"][0]["product_id"] == product.id
    assert client.get("/api/orders/999").status_code == 404
