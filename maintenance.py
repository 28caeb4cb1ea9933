"""
maintenance.py

Maintenance objects that live next to the cleaned tables:
- refresh_clean_sales_data(): re-run the sales cleanup on demand
- v_sales_summary_product_region: product / province summary view
"""

import logging

import duckdb
import pandas as pd

from cleaning import SALE_DATE_FORMAT, column_type, deduplicate


logger = logging.getLogger(__name__)

SUMMARY_VIEW = "v_sales_summary_product_region"

ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# Any run of non-digits counts as a separator, so 2024/01/05 and 2024.1.5 repair too
DATE_SEPARATOR_PATTERN = r"[^0-9]+"

REFRESH_NOTICE = "Sales data cleaned and formatted successfully."


def _repair_sale_dates(con: duckdb.DuckDBPyConnection) -> int:
    """
    Re-parse only the sale_date values whose text is not already YYYY-MM-DD,
    accepting any separator between year, month and day.
    The repaired value is written back in the column's current type.
    """
    target_type = column_type(con, "sales", "sale_date")
    off_pattern = f"NOT regexp_matches(CAST(sale_date AS VARCHAR), '{ISO_DATE_PATTERN}')"
    separators_fixed = (
        f"regexp_replace(trim(CAST(sale_date AS VARCHAR)), '{DATE_SEPARATOR_PATTERN}', '-', 'g')"
    )

    repaired = con.execute(f"SELECT COUNT(*) FROM sales WHERE {off_pattern}").fetchone()[0]
    if repaired:
        con.execute(f"""
            UPDATE sales
            SET sale_date = CAST(
                CAST(strptime({separators_fixed}, '{SALE_DATE_FORMAT}') AS DATE)
                AS {target_type}
            )
            WHERE {off_pattern}
        """)
    return repaired


def refresh_clean_sales_data(con: duckdb.DuckDBPyConnection) -> None:
    """
    Remove duplicate sales and repair non-ISO sale dates in one transaction.
    Rolls back and re-raises on any engine error.
    """
    con.begin()
    try:
        removed = deduplicate(con, "sales")
        repaired = _repair_sale_dates(con)
    except duckdb.Error:
        con.rollback()
        raise
    con.commit()

    logger.debug("refresh_clean_sales_data: %d duplicate(s), %d date(s) repaired", removed, repaired)
    logger.info(REFRESH_NOTICE)


def create_sales_summary_view(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(f"""
        CREATE OR REPLACE VIEW {SUMMARY_VIEW} AS
        SELECT
            s.product_id,
            s.product_name,
            s.province,
            SUM(s.total_sale)                 AS total_sales,
            AVG(s."Customer Satisfaction")    AS avg_satisfaction,
            COUNT(*)                          AS num_sales
        FROM sales s
        GROUP BY s.product_id, s.product_name, s.province
    """)


def load_sales_summary(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    return con.execute(
        f"SELECT * FROM {SUMMARY_VIEW} ORDER BY product_id, product_name, province"
    ).df()
