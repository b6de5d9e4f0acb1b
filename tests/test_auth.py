from autoparts.auth import pwd_context, get_password_hash, create_access_token
from autoparts.database import User, Employee

from conftest import reload


def _login(client, login, password):
    return client.post("/api/login", json={"login": login, "password": password})


def _add_worker(db, password):
    worker = Employee(
        name="Sofiane",
        role="magasinier",
        salary=40000,
        hire_date="2026-02-01",
        username="sofiane",
        password=password,
        has_account=True,
    )
    db.add(worker)
    db.commit()
    db.refresh(worker)
    return worker


def test_seeded_admin_can_log_in(anon_client):
    response = _login(anon_client, "admin@nasser.com", "admin123")

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "admin"
    assert body["user"]["email"] == "admin@nasser.com"
    assert body["access_token"]


def test_seeded_admin_password_is_hashed(db):
    admin = db.query(User).filter(User.email == "admin@nasser.com").one()

    assert admin.password != "admin123"
    assert pwd_context.identify(admin.password) == "bcrypt"


def test_wrong_password_is_rejected(anon_client):
    assert _login(anon_client, "admin@nasser.com", "nope").status_code == 401
    assert _login(anon_client, "inconnu", "nope").status_code == 401


def test_missing_credentials_are_rejected(anon_client):
    assert anon_client.post("/api/login", json={"login": "admin@nasser.com"}).status_code == 400
    assert anon_client.post("/api/login", json={}).status_code == 400


def test_employee_logs_in_with_username(anon_client, db):
    worker = _add_worker(db, get_password_hash("atelier"))

    response = _login(anon_client, "sofiane", "atelier")

    assert response.status_code == 200
    assert response.json()["user"] == {"id": worker.id, "username": "sofiane", "role": "employee"}


def test_employee_without_account_cannot_log_in(anon_client, db):
    worker = _add_worker(db, None)

    assert _login(anon_client, worker.username, "").status_code == 400
    assert _login(anon_client, worker.username, "quelconque").status_code == 401


def test_plain_text_password_is_upgraded_on_login(anon_client, db):
    admin = db.query(User).first()
    admin.password = "ancien-mot-de-passe"
    db.commit()

    assert _login(anon_client, admin.email, "ancien-mot-de-passe").status_code == 200

    stored = reload(db, User, admin.id).password
    assert stored != "ancien-mot-de-passe"
    assert pwd_context.verify("ancien-mot-de-passe", stored)


def test_token_from_login_opens_protected_routes(anon_client):
    token = _login(anon_client, "admin@nasser.com", "admin123").json()["access_token"]

    assert anon_client.get("/api/products/").status_code == 401
    response = anon_client.get("/api/products/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_token_without_user_id_is_rejected(anon_client):
    token = create_access_token({"sub": "admin"})

    response = anon_client.get("/api/products/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_backup_import_requires_admin(anon_client, db):
    _add_worker(db, get_password_hash("atelier"))
    token = _login(anon_client, "sofiane", "atelier").json()["access_token"]

    response = anon_client.post(
        "/api/backup/import",
        headers={"Authorization": f"Bearer {token}"},
        files={"backup": ("backup.sqlite", b"SQLite format 3\x00", "application/octet-stream")},
    )

    assert response.status_code == 403


def test_admin_password_change_checks_current_password(client, db):
    wrong = client.put("/api/users/1", json={"currentPassword": "faux", "newPassword": "nouveau"})
    empty = client.put("/api/users/1", json={})
    ok = client.put("/api/users/1", json={"currentPassword": "admin123", "newPassword": "nouveau"})

    assert wrong.status_code == 401
    assert empty.status_code == 400
    assert ok.status_code == 200
    assert pwd_context.verify("nouveau", reload(db, User, 1).password)


def test_worker_profile_and_password(client, db):
    worker = _add_worker(db, get_password_hash("atelier"))

    assert client.put(f"/api/workers/{worker.id}", json={"phone": "0770000000"}).status_code == 200
    assert client.get(f"/api/workers/{worker.id}").json()["phone"] == "0770000000"

    bad = client.put(f"/api/workers/{worker.id}/password", json={"currentPassword": "x", "newPassword": "y"})
    good = client.put(f"/api/workers/{worker.id}/password", json={"currentPassword": "atelier", "newPassword": "garage"})

    assert bad.status_code == 401
    assert good.status_code == 200
    assert pwd_context.verify("garage", reload(db, Employee, worker.id).password)
