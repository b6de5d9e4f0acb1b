from autoparts.auth import pwd_context
from autoparts.database import Employee, EmployeePayment

from conftest import reload


def _purchase_from(client, supplier_id, product, total):
    return client.post("/api/invoices/", json={
        "type": "purchase",
        "supplierId": supplier_id,
        "total": total,
        "items": [{"productId": product.id, "name": product.name, "purchasePrice": total, "quantity": 1, "total": total}],
    })


def test_supplier_crud(client):
    created = client.post("/api/suppliers/", json={"name": "Sahel Distribution", "phone": "021000000"})
    assert created.status_code == 201
    supplier_id = created.json()["id"]

    updated = client.put(f"/api/suppliers/{supplier_id}", json={"name": "Sahel Distribution SARL"})
    assert updated.json()["name"] == "Sahel Distribution SARL"
    assert client.get(f"/api/suppliers/{supplier_id}").json()["phone"] is None
    assert [s["id"] for s in client.get("/api/suppliers/").json()] == [supplier_id]

    assert client.delete(f"/api/suppliers/{supplier_id}").status_code == 200
    assert client.get(f"/api/suppliers/{supplier_id}").status_code == 404


def test_supplier_with_invoices_cannot_be_deleted(client, supplier, make_product):
    _purchase_from(client, supplier.id, make_product(), 500)

    response = client.delete(f"/api/suppliers/{supplier.id}")

    assert response.status_code == 400
    assert client.get(f"/api/suppliers/{supplier.id}").status_code == 200


def test_supplier_stats(client, supplier, make_product):
    product = make_product()
    _purchase_from(client, supplier.id, product, 500)
    _purchase_from(client, supplier.id, product, 300)
    other = client.post("/api/suppliers/", json={"name": "Sans achat"}).json()

    stats = client.get("/api/suppliers/stats").json()

    assert stats["totalSuppliers"] == 2
    assert stats["totalPurchaseOrders"] == 2
    assert stats["totalPurchaseAmount"] == 800
    assert stats["totalProducts"] == 1
    first, second = stats["supplierStats"]
    assert (first["id"], first["totalOrders"], first["totalSpent"], first["productCount"]) == (supplier.id, 2, 800, 1)
    assert (second["id"], second["totalOrders"], second["totalSpent"]) == (other["id"], 0, 0)


def test_customer_names_are_unique(client):
    first = client.post("/api/customers/", json={"name": "Garage El Bahia"})
    second = client.post("/api/customers/", json={"name": "Garage El Bahia"})

    assert first.status_code == 201
    assert second.status_code == 400
    assert len(client.get("/api/customers/").json()) == 1


def test_customer_with_invoices_cannot_be_deleted(client, customer, make_product):
    product = make_product(current_quantity=2)
    client.post("/api/invoices/", json={
        "type": "sale", "clientId": customer.id, "total": 150,
        "items": [{"productId": product.id, "name": product.name, "quantity": 1, "total": 150}],
    })

    assert client.delete(f"/api/customers/{customer.id}").status_code == 400
    assert client.put(f"/api/customers/{customer.id}", json={"name": "Garage Amine & Fils"}).status_code == 200


def test_employee_account_and_payments(client, db):
    created = client.post("/api/employees/", json={
        "name": "Nadia", "role": "caissière", "salary": 35000,
        "username": "nadia", "password": "caisse", "hasAccount": True,
    })
    assert created.status_code == 201
    body = created.json()
    assert body["hasAccount"] is True
    assert body["hireDate"]
    assert "password" not in body
    employee_id = body["id"]
    assert pwd_context.verify("caisse", reload(db, Employee, employee_id).password)

    client.post(f"/api/employees/{employee_id}/pay", json={"amount": 5000, "date": "2026-03-10", "type": "advance"})
    client.post(f"/api/employees/{employee_id}/pay", json={"amount": 35000, "date": "2026-03-31", "type": "salary"})

    listing = client.get("/api/employees/").json()
    assert listing[0]["lastPayment"] == {"amount": 35000, "date": "2026-03-31", "type": "salary"}
    assert len(client.get(f"/api/employees/{employee_id}/payments").json()) == 2
    assert client.post("/api/employees/999/pay", json={"amount": 1, "date": "2026-03-31", "type": "bonus"}).status_code == 404

    # Sans mot de passe, l'ancien est conservé
    client.put(f"/api/employees/{employee_id}", json={
        "name": "Nadia", "role": "responsable", "salary": 42000, "username": "nadia", "hasAccount": True,
    })
    employee = reload(db, Employee, employee_id)
    assert employee.role == "responsable"
    assert pwd_context.verify("caisse", employee.password)

    assert client.delete(f"/api/employees/{employee_id}").status_code == 200
    db.expire_all()
    assert db.query(EmployeePayment).count() == 0


def test_employee_requires_name_role_and_salary(client):
    response = client.post("/api/employees/", json={"name": "  ", "role": "vendeur", "salary": 1000})

    assert response.status_code == 400
