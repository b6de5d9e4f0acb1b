from autoparts.database import Product
from autoparts.services.stock import apply_stock_change, increase_stock, decrease_stock, StockChange

from conftest import reload


def test_increase_adds_to_non_empty_stock(db, make_product):
    product = make_product(initial_quantity=4, current_quantity=2)

    assert increase_stock(db, product.id, 3, buying_price=90, margin_percent=10)
    db.commit()

    product = reload(db, Product, product.id)
    assert product.initial_quantity == 7
    assert product.current_quantity == 5
    assert product.buying_price == 90
    assert product.selling_price == 0


def test_increase_restarts_current_stock_from_new_initial(db, make_product):
    product = make_product(initial_quantity=6, current_quantity=0)

    increase_stock(db, product.id, 4)
    db.commit()

    product = reload(db, Product, product.id)
    assert product.initial_quantity == 10
    assert product.current_quantity == 10


def test_decrease_never_goes_below_zero(db, make_product):
    product = make_product(current_quantity=2)

    decrease_stock(db, product.id, 5)
    db.commit()

    assert reload(db, Product, product.id).current_quantity == 0


def test_unknown_product_is_reported(db):
    assert apply_stock_change(db, 12345, 1, StockChange.DECREASE) is False
    assert apply_stock_change(db, 12345, 1, StockChange.INCREASE, buying_price=10) is False
