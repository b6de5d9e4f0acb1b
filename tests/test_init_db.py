from sqlalchemy import inspect, text

from autoparts.database import make_engine, User, Category, Product, WebsiteSettings, Contact
from autoparts.init_db import init_database, ensure_column, ADDITIVE_COLUMNS

from conftest import reload


def test_bootstrap_twice_changes_nothing(engine, db):
    users_before = db.query(User).all()
    columns_before = {t: [c["name"] for c in inspect(engine).get_columns(t)] for t in ("invoices", "special_offers")}

    init_database(engine)

    db.expire_all()
    assert [u.password for u in db.query(User).all()] == [u.password for u in users_before]
    assert db.query(User).count() == 1
    assert db.query(WebsiteSettings).count() == 1
    assert db.query(Contact).count() == 1
    for table, columns in columns_before.items():
        assert [c["name"] for c in inspect(engine).get_columns(table)] == columns


def test_existing_columns_are_left_alone(engine):
    for table, name, ddl, fallback in ADDITIVE_COLUMNS:
        assert ensure_column(engine, table, name, ddl, fallback) is False


def test_legacy_table_gets_missing_columns(tmp_path):
    legacy = make_engine(f"sqlite:///{tmp_path / 'legacy.sqlite'}")
    with legacy.begin() as conn:
        conn.execute(text(
            "CREATE TABLE invoices ("
            "id INTEGER PRIMARY KEY, type TEXT NOT NULL, supplierId INTEGER, clientId INTEGER, "
            "total REAL NOT NULL, amount_paid REAL DEFAULT 0, status TEXT DEFAULT 'pending', "
            "created_at DATETIME DEFAULT CURRENT_TIMESTAMP, createdBy INTEGER)"
        ))
        conn.execute(text("INSERT INTO invoices (type, total, createdBy) VALUES ('sale', 250, 1)"))

    try:
        init_database(legacy)

        columns = [c["name"] for c in inspect(legacy).get_columns("invoices")]
        assert "client_name" in columns
        assert "createdByType" in columns
        with legacy.connect() as conn:
            row = conn.execute(text('SELECT "createdByType", total FROM invoices')).one()
        assert tuple(row) == ("admin", 250)
    finally:
        legacy.dispose()


def test_products_are_linked_to_category_by_name(engine, db, make_product):
    category = Category(name_fr="Freinage", name_ar="فرامل")
    db.add(category)
    db.commit()
    linked = make_product(category="Freinage")
    unknown = make_product(category="Éclairage")

    init_database(engine)

    assert reload(db, Product, linked.id).category_id == category.id
    assert reload(db, Product, unknown.id).category_id is None
