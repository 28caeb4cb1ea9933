"""
reports.py

Read-only business reports over the cleaned sales / customers / inventory
tables. Each loader returns a pandas DataFrame; none of them modify data.
"""

import duckdb
import pandas as pd


def load_top_products(con: duckdb.DuckDBPyConnection, limit: int = 5) -> pd.DataFrame:
    query = f"""
        SELECT
            product_name,
            SUM(total_sale) AS total_revenue
        FROM sales
        GROUP BY product_name
        ORDER BY total_revenue DESC, product_name
        LIMIT {int(limit)}
    """
    return con.execute(query).df()


def load_top_provinces(con: duckdb.DuckDBPyConnection, limit: int = 5) -> pd.DataFrame:
    query = f"""
        SELECT
            province,
            SUM(total_sale) AS total_revenue
        FROM sales
        GROUP BY province
        ORDER BY total_revenue DESC, province
        LIMIT {int(limit)}
    """
    return con.execute(query).df()


def load_monthly_trend(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Revenue per calendar month. Needs sale_date converted to DATE first."""
    return con.execute("""
        SELECT
            DATE_TRUNC('month', sale_date) AS month,
            SUM(total_sale)                AS revenue
        FROM sales
        GROUP BY month
        ORDER BY month
    """).df()


def load_inventory_profit(con: duckdb.DuckDBPyConnection, limit: int = 10) -> pd.DataFrame:
    query = f"""
        SELECT
            product_id,
            product_name,
            expected_profit,
            sold_stock,
            expected_profit * sold_stock AS total_expected_profit
        FROM inventory
        ORDER BY total_expected_profit DESC, product_id
        LIMIT {int(limit)}
    """
    return con.execute(query).df()


def load_customer_lifetime_value(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    return con.execute("""
        SELECT
            c.customer_id,
            c.city,
            c.age_group,
            SUM(s.total_sale) AS lifetime_value
        FROM customers c
        JOIN sales s ON c.customer_id = s.customer_id
        GROUP BY c.customer_id, c.city, c.age_group
        ORDER BY lifetime_value DESC, c.customer_id
    """).df()


def load_discount_impact(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Sales count and revenue per discount rate, rounded as a decimal to 2 places."""
    return con.execute("""
        SELECT
            ROUND(CAST(discount AS DECIMAL(18, 6)), 2) AS discount_rate,
            COUNT(*)                                   AS num_sales,
            SUM(total_sale)                            AS total_revenue
        FROM sales
        GROUP BY discount_rate
        ORDER BY discount_rate
    """).df()


def load_low_stock_high_demand(
    con: duckdb.DuckDBPyConnection, stock_threshold: int = 50
) -> pd.DataFrame:
    """Products with fewer than `stock_threshold` units on hand, busiest sellers first."""
    query = """
        SELECT
            i.product_id,
            i.product_name,
            i.stock_available,
            s.total_units_sold
        FROM inventory i
        JOIN (
            SELECT product_id, SUM(quantity) AS total_units_sold
            FROM sales
            GROUP BY product_id
        ) s ON i.product_id = s.product_id
        WHERE i.stock_available < ?
        ORDER BY s.total_units_sold DESC, i.product_id
    """
    return con.execute(query, [stock_threshold]).df()


def load_satisfaction_by_product(
    con: duckdb.DuckDBPyConnection, min_ratings: int = 10, limit: int = 5
) -> pd.DataFrame:
    """
    Average satisfaction per product. Only products with more than
    `min_ratings` sales are ranked.
    """
    query = f"""
        SELECT
            product_name,
            ROUND(AVG("Customer Satisfaction"), 2) AS avg_rating,
            COUNT(*)                               AS rating_count
        FROM sales
        GROUP BY product_name
        HAVING COUNT(*) > ?
        ORDER BY avg_rating DESC, product_name
        LIMIT {int(limit)}
    """
    return con.execute(query, [min_ratings]).df()


REPORTS = {
    "top-products": load_top_products,
    "top-provinces": load_top_provinces,
    "monthly-trend": load_monthly_trend,
    "inventory-profit": load_inventory_profit,
    "customer-lifetime-value": load_customer_lifetime_value,
    "discount-impact": load_discount_impact,
    "low-stock-high-demand": load_low_stock_high_demand,
    "satisfaction-by-product": load_satisfaction_by_product,
}


def run_report(con: duckdb.DuckDBPyConnection, name: str) -> pd.DataFrame:
    try:
        loader = REPORTS[name]
    except KeyError:
        raise KeyError(
            f"Unknown report {name!r}; available: {', '.join(sorted(REPORTS))}"
        ) from None
    return loader(con)
