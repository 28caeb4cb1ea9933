#!/usr/bin/env python
"""
pipeline.py

End-to-end data pipeline for the retail sales dataset:
- Load customers / sales / inventory CSVs
- Type them and load into the DuckDB warehouse (retail.duckdb)
- Run the cleaning pass
- Create the product / region summary view
- Print or export the business reports
"""

import argparse
import logging
import os
from pathlib import Path

import duckdb
import pandas as pd

from cleaning import DEDUP_KEYS, ORDINAL_COLUMN, InvalidSaleDateError, run_cleaning_pass
from maintenance import SUMMARY_VIEW, create_sales_summary_view, refresh_clean_sales_data
from reports import REPORTS, run_report


DUCKDB_PATH = os.environ.get("DUCKDB_PATH", "retail.duckdb")
DATA_DIR = os.environ.get("DATA_DIR", "data")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)

# Referenced columns per table and the pandas dtype they are loaded as.
# Any other column in the source file is carried through untouched.
TABLE_COLUMNS = {
    "customers": {
        "customer_id": "string",
        "city": "string",
        "age": "Int64",
        "age_group": "string",
        "gender": "string",
    },
    "sales": {
        "sale_id": "string",
        "customer_id": "string",
        "product_id": "string",
        "product_name": "string",
        "province": "string",
        "sale_date": "string",
        "quantity": "Int64",
        "discount": "Float64",
        "total_sale": "Float64",
        "Customer Satisfaction": "Float64",
    },
    "inventory": {
        "product_id": "string",
        "product_name": "string",
        "expected_profit": "Float64",
        "sold_stock": "Int64",
        "stock_available": "Int64",
    },
}


CLEANING_LABELS = {
    "customers_removed": "Duplicate customers removed",
    "genders_changed": "Gender values standardized",
    "dates_converted": "Sale dates converted",
    "age_groups_filled": "Age groups backfilled",
}


def load_source_frames(data_dir=DATA_DIR) -> dict:
    """Read <table>.csv for every table from data_dir, all columns as text."""
    frames = {}
    for table in TABLE_COLUMNS:
        path = Path(data_dir) / f"{table}.csv"
        print(f"Reading {path} ...")
        frames[table] = pd.read_csv(path, dtype=str)
    return frames


def prepare_frame(table: str, df: pd.DataFrame) -> pd.DataFrame:
    """
    Typing for one source table:
    - Strip column names
    - Check the referenced columns are present
    - Cast numeric and text columns to nullable pandas dtypes
    - Add the insertion-order column used by deduplication
    """
    if table not in TABLE_COLUMNS:
        raise ValueError(f"Unknown table {table!r}")
    columns = TABLE_COLUMNS[table]

    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]

    missing = set(columns) - set(df.columns)
    if missing:
        raise ValueError(f"{table} is missing expected columns: {sorted(missing)}")

    for column, dtype in columns.items():
        if dtype == "string":
            series = df[column]
            # integer keys that pandas widened to float because of missing values
            if pd.api.types.is_float_dtype(series) and (series.dropna() % 1 == 0).all():
                series = series.astype("Int64")
            df[column] = series.astype("string")
        else:
            df[column] = pd.to_numeric(df[column]).astype(dtype)

    if table in DEDUP_KEYS:
        df.insert(0, ORDINAL_COLUMN, range(1, len(df) + 1))
        df[ORDINAL_COLUMN] = df[ORDINAL_COLUMN].astype("int64")

    return df


def load_tables(con: duckdb.DuckDBPyConnection, frames: dict) -> dict:
    """
    Persist source frames as DuckDB tables, replacing existing ones.
    Returns the loaded row count per table.
    """
    counts = {}
    for table, raw_df in frames.items():
        df = prepare_frame(table, raw_df)
        view_name = f"{table}_df"

        con.register(view_name, df)
        con.execute(f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM {view_name}")
        con.unregister(view_name)

        counts[table] = len(df)
        logger.info("Loaded %d row(s) into %s", len(df), table)
    return counts


def cmd_load(con, args):
    frames = load_source_frames(args.data_dir)
    counts = load_tables(con, frames)
    for table, count in counts.items():
        print(f"  - {table}: {count:,} rows")


def cmd_clean(con, args):
    print("Running cleaning pass ...")
    summary = run_cleaning_pass(con)
    for field, count in summary.as_dict().items():
        print(f"{CLEANING_LABELS[field]:<27} : {count:,}")


def cmd_refresh(con, args):
    print("Refreshing cleaned sales data ...")
    refresh_clean_sales_data(con)


def cmd_view(con, args):
    create_sales_summary_view(con)
    print(f"View {SUMMARY_VIEW} created.")


def cmd_report(con, args):
    names = sorted(REPORTS) if args.name == "all" else [args.name]
    for name in names:
        df = run_report(con, name)
        if args.output:
            output = Path(args.output)
            if len(names) > 1:
                output = output.with_name(f"{output.stem}_{name}{output.suffix}")
            df.to_csv(output, index=False)
            print(f"Wrote {len(df):,} rows of {name} to {output}")
        else:
            print(f"\n== {name} ==")
            print(df.to_string(index=False) if not df.empty else "(no rows)")


def cmd_run(con, args):
    print(f"Loading source data from {args.data_dir} ...")
    cmd_load(con, args)
    cmd_clean(con, args)
    cmd_view(con, args)
    print("Done. Tables created:")
    print("  - customers")
    print("  - sales")
    print("  - inventory")
    print(f"  - {SUMMARY_VIEW} (view)")


COMMANDS = {
    "run": cmd_run,
    "load": cmd_load,
    "clean": cmd_clean,
    "refresh": cmd_refresh,
    "view": cmd_view,
    "report": cmd_report,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Retail sales cleaning and reporting")
    parser.add_argument("--db", default=DUCKDB_PATH, help="DuckDB database file")
    parser.add_argument("--data-dir", default=DATA_DIR, help="Directory with the source CSVs")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Load, clean and create the summary view")
    sub.add_parser("load", help="Load the source CSVs into DuckDB")
    sub.add_parser("clean", help="Run the cleaning pass")
    sub.add_parser("refresh", help="Run refresh_clean_sales_data")
    sub.add_parser("view", help=f"Create {SUMMARY_VIEW}")

    report = sub.add_parser("report", help="Print or export a report")
    report.add_argument("name", choices=sorted(REPORTS) + ["all"])
    report.add_argument("--output", help="Write the report to this CSV file")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    command = COMMANDS[args.command or "run"]
    con = duckdb.connect(args.db)
    try:
        command(con, args)
    except InvalidSaleDateError as e:
        print(f"ERROR: {e}")
        print("Fix the offending sale_date values and re-run.")
        return 1
    finally:
        con.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
