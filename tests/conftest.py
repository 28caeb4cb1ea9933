import duckdb
import pandas as pd
import pytest

from cleaning import run_cleaning_pass
from pipeline import load_tables


# ======================================================
#                DUCKDB FIXTURE
# ======================================================

@pytest.fixture
def con():
    con = duckdb.connect(":memory:")
    yield con
    con.close()


# ======================================================
#               SAMPLE DATA FIXTURES
# ======================================================

@pytest.fixture
def customers_raw():
    return pd.DataFrame([
        {"customer_id": 7, "city": "Toronto", "age": 22, "age_group": None, "gender": "m"},
        # duplicate ID, inserted later
        {"customer_id": 7, "city": "Ottawa", "age": 51, "age_group": None, "gender": "Female"},
        {"customer_id": 8, "city": "Halifax", "age": 30, "age_group": None, "gender": "F"},
        {"customer_id": 9, "city": "Regina", "age": 45, "age_group": "Adult", "gender": "MALE"},
        {"customer_id": 10, "city": "Victoria", "age": None, "age_group": None, "gender": None},
        {"customer_id": 11, "city": "Calgary", "age": 25, "age_group": None, "gender": "nonbinary"},
        {"customer_id": 12, "city": "Quebec", "age": 44, "age_group": None, "gender": "female"},
    ])


def make_sale(sale_id, **overrides):
    row = {
        "sale_id": sale_id,
        "customer_id": 7,
        "product_id": "P1",
        "product_name": "Widget",
        "province": "East",
        "sale_date": "2024-01-15",
        "quantity": 1,
        "discount": 0.0,
        "total_sale": 10.0,
        "Customer Satisfaction": 4.0,
    }
    row.update(overrides)
    return row


@pytest.fixture
def sales_raw():
    return pd.DataFrame([
        make_sale(1, customer_id=7, sale_date="2024-01-15", quantity=2,
                  discount=0.101, total_sale=100.0, **{"Customer Satisfaction": 4.0}),
        make_sale(2, customer_id=8, sale_date="2024-01-20", quantity=3,
                  discount=0.104, total_sale=200.0, **{"Customer Satisfaction": 5.0}),
        make_sale(3, customer_id=7, sale_date="2024-02-03", quantity=5,
                  discount=0.2, total_sale=300.0, **{"Customer Satisfaction": None}),
    ])


@pytest.fixture
def inventory_raw():
    return pd.DataFrame([
        {"product_id": "P1", "product_name": "Widget", "expected_profit": 2.5,
         "sold_stock": 100, "stock_available": 20},
        {"product_id": "P2", "product_name": "Gadget", "expected_profit": 10.0,
         "sold_stock": 40, "stock_available": 80},
    ])


@pytest.fixture
def warehouse(con, customers_raw, sales_raw, inventory_raw):
    load_tables(con, {
        "customers": customers_raw,
        "sales": sales_raw,
        "inventory": inventory_raw,
    })
    return con


@pytest.fixture
def clean_warehouse(warehouse):
    run_cleaning_pass(warehouse)
    return warehouse
