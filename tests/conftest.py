import os
import tempfile

# Environnement isolé avant l'import de l'application
_TMP_ROOT = tempfile.mkdtemp(prefix="autoparts-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_ROOT, 'unused.sqlite')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["BACKUP_DIR"] = os.path.join(_TMP_ROOT, "backups")
os.environ["INIT_DB_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from autoparts.database import make_engine, get_db, Product, Supplier, Customer
from autoparts.init_db import init_database
from autoparts.auth import get_current_user, AuthUser
from main import app


@pytest.fixture
def engine(tmp_path):
    test_engine = make_engine(f"sqlite:///{tmp_path / 'database.sqlite'}")
    init_database(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _override_db(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()
    return override_get_db


@pytest.fixture
def admin_user():
    return AuthUser(username="admin", user_id=1, email="admin@nasser.com", role="admin")


@pytest.fixture
def client(session_factory, admin_user):
    app.dependency_overrides[get_db] = _override_db(session_factory)
    app.dependency_overrides[get_current_user] = lambda: admin_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(session_factory):
    """Client sans utilisateur injecté: l'authentification JWT réelle s'applique."""
    app.dependency_overrides[get_db] = _override_db(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "name": f"Plaquette {counter['n']}",
            "barcode": f"BAR-{counter['n']:04d}",
            "brand": "Bosch",
            "category": "Freinage",
            "buying_price": 100,
            "selling_price": 150,
            "margin_percent": 50,
            "initial_quantity": 0,
            "current_quantity": 0,
            "min_quantity": 0,
        }
        values.update(fields)
        product = Product(**values)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def supplier(db):
    row = Supplier(name="Atlas Pièces", phone="0550000000")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def customer(db):
    row = Customer(name="Garage Amine")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def reload(db, model, pk):
    """Relire une ligne depuis la base (ignorer l'état en mémoire de la session)."""
    db.expire_all()
    return db.get(model, pk)
