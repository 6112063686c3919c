"""
District Investment Pulse — Data Ingestion

This module handles:
1. Reading the property sales export (comma- or tab-separated)
2. Mapping the county's raw headers onto canonical column names
3. Converting "YYYY-MM" sale months into real dates (day fixed to the 1st)

Malformed input is fatal. A bad sale date or a missing price aborts the load
with DataQualityError rather than silently dropping rows.
"""

import os
from datetime import datetime
from pathlib import Path
import logging

import pandas as pd

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SALE_MONTH_PATTERN = r'^\d{4}-(?:0[1-9]|1[0-2])$'

TAB_SUFFIXES = {'.tsv', '.tab', '.txt'}

REQUIRED_COLUMNS = ['tax_key', 'district', 'sale_date', 'sale_price']

# Descriptive attributes that are numeric when present; blanks become NaN
NUMERIC_ATTRIBUTES = [
    'stories', 'year_built', 'rooms', 'bedrooms', 'full_baths', 'half_baths',
    'finished_sqft', 'units', 'lot_size',
]

# Raw header (lowercased) -> canonical column
COLUMN_ALIASES = {
    'proptype': 'prop_type',
    'prop_type': 'prop_type',
    'taxkey': 'tax_key',
    'tax_key': 'tax_key',
    'address': 'address',
    'condoproject': 'condo_project',
    'condo_project': 'condo_project',
    'district': 'district',
    'nbhd': 'nbhd',
    'style': 'style',
    'extwall': 'extwall',
    'stories': 'stories',
    'year_built': 'year_built',
    'nr_of_rms': 'rooms',
    'rooms': 'rooms',
    'fin_sqft': 'finished_sqft',
    'finishedsqft': 'finished_sqft',
    'finished_sqft': 'finished_sqft',
    'units': 'units',
    'bdrms': 'bedrooms',
    'bedrooms': 'bedrooms',
    'fbath': 'full_baths',
    'full_baths': 'full_baths',
    'hbath': 'half_baths',
    'half_baths': 'half_baths',
    'lotsize': 'lot_size',
    'lot_size': 'lot_size',
    'sale_date': 'sale_date',
    'sale_price': 'sale_price',
}

# Max offending values quoted in an error message
MAX_REPORTED = 5


class DataQualityError(ValueError):
    """Raised when the sales input cannot be loaded as-is."""


def data_dir() -> Path:
    return Path(os.environ.get("DATA_DIR", "data"))


def log_error(message: str):
    """Log errors to <data dir>/errors.log so failed runs leave a trail."""
    log_dir = data_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    error_log_path = log_dir / "errors.log"

    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(error_log_path, "a") as f:
        f.write(f"[{timestamp}] {message}\n")

    logger.error(message)


def _describe_rows(series: pd.Series) -> str:
    shown = [f"row {idx}: {value!r}" for idx, value in series.head(MAX_REPORTED).items()]
    more = len(series) - len(shown)
    if more > 0:
        shown.append(f"... and {more} more")
    return ", ".join(shown)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename raw export headers to canonical snake_case names.

    Headers are matched case-insensitively after trimming. Unknown columns are
    kept under their original name.

    Raises:
        DataQualityError: if a required column is missing
    """
    renamed = {}
    for col in df.columns:
        key = str(col).strip().lower()
        if key in COLUMN_ALIASES:
            renamed[col] = COLUMN_ALIASES[key]
    df = df.rename(columns=renamed)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataQualityError(f"Sales data is missing required columns: {missing}")

    return df


def parse_sale_dates(series: pd.Series) -> pd.Series:
    """
    Convert "YYYY-MM" sale months to timestamps on the first of the month.

    Args:
        series: Raw sale_date values

    Returns:
        datetime64 Series aligned with the input

    Raises:
        DataQualityError: if any value is missing or not a valid "YYYY-MM"
    """
    cleaned = series.astype('string').str.strip()
    valid = cleaned.str.match(SALE_MONTH_PATTERN).fillna(False).astype(bool)

    if not valid.all():
        bad = series[~valid]
        raise DataQualityError(
            f"{len(bad)} sale_date value(s) do not match YYYY-MM: {_describe_rows(bad)}"
        )

    return pd.to_datetime(cleaned + '-01', format='%Y-%m-%d')


def _to_integer(df: pd.DataFrame, column: str) -> pd.Series:
    numeric = pd.to_numeric(df[column], errors='coerce')
    bad = df[column][numeric.isna() | (numeric % 1 != 0)]
    if len(bad) > 0:
        raise DataQualityError(
            f"{len(bad)} {column} value(s) are not whole numbers: {_describe_rows(bad)}"
        )
    too_large = df[column][numeric.abs() >= 2 ** 63]
    if len(too_large) > 0:
        raise DataQualityError(
            f"{len(too_large)} {column} value(s) do not fit a 64-bit integer: {_describe_rows(too_large)}"
        )
    return numeric.astype('int64')


def load_sales(path: Path) -> pd.DataFrame:
    """
    Read the property sales export into a DataFrame of PropertySale rows.

    Tab-separated exports (.tsv, .tab, .txt) are read with a tab separator,
    anything else as CSV.

    Args:
        path: Path to the sales file

    Returns:
        DataFrame with canonical columns, sale_date as datetime64 and
        sale_price/district as int64
    """
    path = Path(path)
    sep = '\t' if path.suffix.lower() in TAB_SUFFIXES else ','

    logger.info(f"Reading sales from {path} (sep={sep!r})...")
    # Everything is read as text so tax keys keep their leading zeros
    try:
        df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False, na_values=[''])
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataQualityError(f"Could not parse {path}: {e}") from e
    df = normalize_columns(df)

    df['sale_date'] = parse_sale_dates(df['sale_date'])
    df['sale_price'] = _to_integer(df, 'sale_price')
    df['district'] = _to_integer(df, 'district')

    df['tax_key'] = df['tax_key'].str.strip()
    missing_keys = df['tax_key'][df['tax_key'].isna() | (df['tax_key'] == '')]
    if len(missing_keys) > 0:
        raise DataQualityError(f"{len(missing_keys)} sale(s) have no tax key: {_describe_rows(missing_keys)}")

    for col in NUMERIC_ATTRIBUTES:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce')

    return df


def filter_property_types(df: pd.DataFrame, types) -> pd.DataFrame:
    """Keep only the listed property types; an empty list keeps everything."""
    if not types:
        return df
    if 'prop_type' not in df.columns:
        raise DataQualityError("PROPERTY_TYPES is set but the sales data has no property type column")

    wanted = {t.strip().upper() for t in types}
    before_count = len(df)
    kept = df[df['prop_type'].astype(str).str.strip().str.upper().isin(wanted)].copy()
    logger.info(f"Filtered {before_count - len(kept)} sales outside property types {sorted(wanted)}")
    return kept


def run_ingestion(path: Path, property_types=None) -> pd.DataFrame:
    """
    Load and filter the sales table.

    Returns:
        DataFrame of sales ready for transformation

    Raises:
        DataQualityError: on malformed input or if no sales remain
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA INGESTION")
    logger.info("=" * 60)

    sales_df = load_sales(path)
    sales_df = filter_property_types(sales_df, property_types)

    if sales_df.empty:
        raise DataQualityError(f"No sales left to analyse in {path}")

    logger.info(
        f"✅ Loaded {len(sales_df)} sales across {sales_df['district'].nunique()} districts "
        f"and {sales_df['tax_key'].nunique()} properties "
        f"({sales_df['sale_date'].min():%Y-%m} to {sales_df['sale_date'].max():%Y-%m})"
    )
    return sales_df


if __name__ == "__main__":
    sales = run_ingestion(Path(os.environ.get("SALES_CSV", "data/property_sales.csv")))
    print(f"{len(sales)} sales loaded")
