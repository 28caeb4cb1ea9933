#!/usr/bin/env python
"""
dashboard_app.py

Streamlit dashboard on top of the cleaned DuckDB warehouse (retail.duckdb).
Run with:
    streamlit run dashboard_app.py
"""

import os

import duckdb
import streamlit as st

from maintenance import SUMMARY_VIEW, load_sales_summary
from reports import (
    load_customer_lifetime_value,
    load_discount_impact,
    load_inventory_profit,
    load_low_stock_high_demand,
    load_monthly_trend,
    load_satisfaction_by_product,
    load_top_products,
    load_top_provinces,
)


DUCKDB_PATH = os.environ.get("DUCKDB_PATH", "retail.duckdb")


@st.cache_resource
def get_connection():
    return duckdb.connect(DUCKDB_PATH, read_only=True)


def load_total_revenue(con) -> float:
    return con.execute("SELECT SUM(total_sale) FROM sales").fetchone()[0]


def summary_view_exists(con) -> bool:
    row = con.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ? AND table_type = 'VIEW'",
        [SUMMARY_VIEW],
    ).fetchone()
    return row[0] > 0


def load_dashboard_data(con, top_n: int = 5, stock_threshold: int = 50) -> dict:
    """Every DataFrame the dashboard renders, keyed by section."""
    return {
        "top_products": load_top_products(con, limit=top_n),
        "top_provinces": load_top_provinces(con, limit=top_n),
        "monthly_trend": load_monthly_trend(con),
        "inventory_profit": load_inventory_profit(con, limit=top_n * 2),
        "customer_lifetime_value": load_customer_lifetime_value(con),
        "discount_impact": load_discount_impact(con),
        "low_stock": load_low_stock_high_demand(con, stock_threshold=stock_threshold),
        "satisfaction": load_satisfaction_by_product(con, limit=top_n),
        "summary": load_sales_summary(con),
    }


def main():
    st.title("Retail Sales Analytics Dashboard")

    con = get_connection()

    # Sidebar filters
    st.sidebar.header("Settings")
    top_n = st.sidebar.slider("Top N", min_value=3, max_value=20, value=5)
    stock_threshold = st.sidebar.number_input(
        "Low stock threshold (units)", min_value=1, value=50, step=5
    )

    total_revenue = load_total_revenue(con)
    if total_revenue is None:
        st.error("No data found in sales. Run pipeline.py first.")
        return

    if not summary_view_exists(con):
        st.error(f"View {SUMMARY_VIEW} not found. Run `python pipeline.py view` first.")
        return

    data = load_dashboard_data(con, top_n=top_n, stock_threshold=int(stock_threshold))

    # KPI layout
    st.subheader("Key Metrics")

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Revenue", f"{total_revenue:,.0f}")

    top_products_df = data["top_products"]
    col2.metric(
        "Top Product",
        top_products_df["product_name"].iloc[0] if not top_products_df.empty else "N/A",
    )
    clv_df = data["customer_lifetime_value"]
    col3.metric(
        "Median CLV",
        f"{clv_df['lifetime_value'].median():,.0f}" if not clv_df.empty else "N/A",
    )

    # Time series
    st.subheader("Monthly Revenue")
    trend_df = data["monthly_trend"]
    if not trend_df.empty:
        st.line_chart(trend_df.set_index("month")["revenue"])
    else:
        st.info("No monthly data available.")

    col_left, col_right = st.columns(2)

    with col_left:
        st.markdown(f"**Top {top_n} Products by Revenue**")
        if not top_products_df.empty:
            st.bar_chart(top_products_df.set_index("product_name")["total_revenue"])
        else:
            st.info("No product data.")

    with col_right:
        st.markdown(f"**Top {top_n} Provinces by Revenue**")
        provinces_df = data["top_provinces"]
        if not provinces_df.empty:
            st.bar_chart(provinces_df.set_index("province")["total_revenue"])
        else:
            st.info("No province data.")

    # Inventory
    st.subheader("Inventory")
    st.markdown("**Expected profit ranking**")
    st.dataframe(data["inventory_profit"])
    st.markdown(f"**Low stock (< {int(stock_threshold)} units), high demand**")
    low_stock_df = data["low_stock"]
    if not low_stock_df.empty:
        st.dataframe(low_stock_df)
    else:
        st.info("No products below the stock threshold.")

    # Pricing and satisfaction
    st.subheader("Discount Impact")
    discount_df = data["discount_impact"]
    if not discount_df.empty:
        st.dataframe(discount_df)
        st.bar_chart(discount_df.set_index("discount_rate")["total_revenue"])

    st.subheader("Customer Satisfaction by Product")
    satisfaction_df = data["satisfaction"]
    if not satisfaction_df.empty:
        st.dataframe(satisfaction_df)
    else:
        st.info("No product has enough ratings yet.")

    st.subheader("Customer Lifetime Value")
    st.dataframe(clv_df.head(50))

    st.subheader("Sales by Product and Province")
    st.dataframe(data["summary"])

    st.caption(
        "Reports read the cleaned tables. Re-run `python pipeline.py refresh` "
        "after new sales are ingested."
    )


if __name__ == "__main__":
    main()
