"""
cleaning.py

In-place cleaning pass over the retail tables in DuckDB:
- Remove duplicate customers / sales (keep the first inserted row)
- Standardize gender into Male / Female / Other
- Convert sales.sale_date from text into a DATE column
- Backfill missing age groups from age
"""

import logging
from dataclasses import dataclass, asdict

import duckdb


logger = logging.getLogger(__name__)

# Logical key per table that should map to exactly one row
DEDUP_KEYS = {
    "customers": "customer_id",
    "sales": "sale_id",
}

# Surrogate insertion-order column added at ingest; DuckDB's rowid otherwise
ORDINAL_COLUMN = "row_ordinal"

GENDER_VARIANTS = {
    "m": "Male",
    "male": "Male",
    "f": "Female",
    "female": "Female",
}
GENDER_DEFAULT = "Other"

SALE_DATE_FORMAT = "%Y-%m-%d"


class InvalidSaleDateError(ValueError):
    """Raised when sale_date values do not parse as YYYY-MM-DD."""

    def __init__(self, count, samples):
        self.count = count
        self.samples = samples
        preview = ", ".join(f"sale_id={sale_id}: {value!r}" for sale_id, value in samples)
        super().__init__(
            f"{count} sale_date value(s) do not match {SALE_DATE_FORMAT}: {preview}"
        )


@dataclass
class CleaningSummary:
    customers_removed: int = 0
    genders_changed: int = 0
    dates_converted: int = 0
    age_groups_filled: int = 0

    def as_dict(self):
        return asdict(self)


def column_type(con: duckdb.DuckDBPyConnection, table: str, column: str):
    """Return the DuckDB type name of table.column, or None if it doesn't exist."""
    row = con.execute(
        """
        SELECT data_type
        FROM information_schema.columns
        WHERE table_name = ? AND column_name = ?
        """,
        [table, column],
    ).fetchone()
    return row[0] if row else None


def _scalar(con, query, params=None):
    return con.execute(query, params or []).fetchone()[0]


def deduplicate(con: duckdb.DuckDBPyConnection, table: str) -> int:
    """
    Keep one physical row per logical key: the one with the lowest ordinal.
    Rows whose key is NULL are left alone. Returns the number of rows removed.
    """
    if table not in DEDUP_KEYS:
        raise ValueError(f"No deduplication key defined for table {table!r}")
    key = DEDUP_KEYS[table]

    ordinal = ORDINAL_COLUMN
    if column_type(con, table, ORDINAL_COLUMN) is None:
        logger.debug("%s has no %s column, falling back to rowid", table, ORDINAL_COLUMN)
        ordinal = "rowid"

    rows_before = _scalar(con, f"SELECT COUNT(*) FROM {table}")
    con.execute(f"""
        DELETE FROM {table}
        WHERE {ordinal} IN (
            SELECT {ordinal}
            FROM (
                SELECT
                    {ordinal},
                    ROW_NUMBER() OVER (PARTITION BY {key} ORDER BY {ordinal}) AS copy_no
                FROM {table}
                WHERE {key} IS NOT NULL
            )
            WHERE copy_no > 1
        )
    """)
    removed = rows_before - _scalar(con, f"SELECT COUNT(*) FROM {table}")

    logger.info("Removed %d duplicate row(s) from %s", removed, table)
    return removed


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _gender_case() -> str:
    # NULL never matches a WHEN, so it falls to the default
    whens = " ".join(
        f"WHEN {_literal(variant)} THEN {_literal(canonical)}"
        for variant, canonical in GENDER_VARIANTS.items()
    )
    return f"CASE LOWER(gender) {whens} ELSE {_literal(GENDER_DEFAULT)} END"


def standardize_gender(con: duckdb.DuckDBPyConnection) -> int:
    """Map free-text gender values onto Male / Female / Other."""
    case_sql = _gender_case()

    changed = _scalar(
        con,
        f"SELECT COUNT(*) FROM customers WHERE gender IS DISTINCT FROM ({case_sql})",
    )
    con.execute(f"UPDATE customers SET gender = {case_sql}")

    logger.info("Standardized gender on %d customer row(s)", changed)
    return changed


def normalize_sale_dates(con: duckdb.DuckDBPyConnection) -> int:
    """
    Convert sales.sale_date into a DATE column.

    Every non-null value must parse as YYYY-MM-DD; otherwise nothing is
    changed and InvalidSaleDateError is raised. Already-converted columns
    are left as they are.
    """
    current_type = column_type(con, "sales", "sale_date")
    if current_type == "DATE":
        logger.info("sales.sale_date is already a DATE column")
        return 0

    invalid_filter = f"""
        sale_date IS NOT NULL
        AND try_strptime(CAST(sale_date AS VARCHAR), '{SALE_DATE_FORMAT}') IS NULL
    """
    invalid_count = _scalar(con, f"SELECT COUNT(*) FROM sales WHERE {invalid_filter}")
    if invalid_count:
        samples = con.execute(f"""
            SELECT sale_id, CAST(sale_date AS VARCHAR)
            FROM sales
            WHERE {invalid_filter}
            LIMIT 5
        """).fetchall()
        raise InvalidSaleDateError(invalid_count, samples)

    converted = _scalar(con, "SELECT COUNT(sale_date) FROM sales")
    con.execute(f"""
        ALTER TABLE sales
        ALTER COLUMN sale_date TYPE DATE
        USING CAST(strptime(CAST(sale_date AS VARCHAR), '{SALE_DATE_FORMAT}') AS DATE)
    """)

    logger.info("Converted %d sale_date value(s) from %s to DATE", converted, current_type)
    return converted


def backfill_age_groups(con: duckdb.DuckDBPyConnection) -> int:
    """Fill age_group from age where it is missing. Existing values are kept."""
    filled = _scalar(
        con,
        "SELECT COUNT(*) FROM customers WHERE age_group IS NULL AND age IS NOT NULL",
    )
    con.execute("""
        UPDATE customers
        SET age_group = CASE
            WHEN age_group IS NULL AND age < 25 THEN 'Youth'
            WHEN age_group IS NULL AND age BETWEEN 25 AND 44 THEN 'Adult'
            WHEN age_group IS NULL AND age >= 45 THEN 'Senior'
            ELSE age_group
        END
    """)

    logger.info("Backfilled age_group on %d customer row(s)", filled)
    return filled


def run_cleaning_pass(con: duckdb.DuckDBPyConnection) -> CleaningSummary:
    """Run the full cleaning pass. Safe to re-run."""
    return CleaningSummary(
        customers_removed=deduplicate(con, "customers"),
        genders_changed=standardize_gender(con),
        dates_converted=normalize_sale_dates(con),
        age_groups_filled=backfill_age_groups(con),
    )
