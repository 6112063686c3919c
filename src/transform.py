"""
District Investment Pulse — Transformation Logic

Turns the flat sales table into one investment score per district:
- Repeat-Sale Filter: properties (tax keys) sold more than once
- Price Trend: average annualized price change between consecutive sales
- Sales Volume: average number of sales per calendar month
- Score: 0.7 * Z(price trend) + 0.3 * Z(sales volume), ranked descending

Same-year repeat sales have no annualized change and are left out of the
price average. A metric with zero spread across districts cannot be
Z-normalized; it is reported and contributes nothing to the score.
"""

import logging

import numpy as np
import pandas as pd

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PRICE_WEIGHT = 0.7
VOLUME_WEIGHT = 0.3

PRICE_METRIC = 'avg_annual_price_increase'
VOLUME_METRIC = 'avg_monthly_sales'


def repeat_sales(sales_df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep only sales of properties that appear more than once.

    Args:
        sales_df: Loaded sales

    Returns:
        Subset of sales_df (a copy) whose tax_key occurs at least twice
    """
    counts = sales_df.groupby('tax_key')['tax_key'].transform('size')
    repeats = sales_df[counts > 1].copy()
    logger.info(
        f"Found {repeats['tax_key'].nunique()} repeat-sold properties "
        f"({len(repeats)} of {len(sales_df)} sales)"
    )
    return repeats


def price_change_pairs(repeats: pd.DataFrame) -> pd.DataFrame:
    """
    Build one row per consecutive pair of sales of the same property.

    Sales are ordered by date within each tax key; equal dates keep their
    load order. A pair is attributed to the district of its later sale.

    Returns:
        DataFrame with columns: tax_key, district, prev_date, prev_price,
        sale_date, sale_price, price_change, year_gap, annualized_change.
        annualized_change is NaN when both sales fall in the same year.
    """
    columns = [
        'tax_key', 'district', 'prev_date', 'prev_price', 'sale_date', 'sale_price',
        'price_change', 'year_gap', 'annualized_change',
    ]
    if repeats.empty:
        return pd.DataFrame(columns=columns)

    ordered = repeats.sort_values(['tax_key', 'sale_date'], kind='stable')
    grouped = ordered.groupby('tax_key', sort=False)

    pairs = ordered.assign(
        prev_date=grouped['sale_date'].shift(),
        prev_price=grouped['sale_price'].shift(),
    )
    pairs = pairs[pairs['prev_date'].notna()].copy()

    pairs['prev_price'] = pairs['prev_price'].astype('int64')
    pairs['price_change'] = pairs['sale_price'] - pairs['prev_price']
    pairs['year_gap'] = pairs['sale_date'].dt.year - pairs['prev_date'].dt.year

    # Same-year resales would divide by zero
    gap = pairs['year_gap'].where(pairs['year_gap'] != 0)
    pairs['annualized_change'] = pairs['price_change'] / gap

    same_year = int(pairs['annualized_change'].isna().sum())
    if same_year:
        logger.info(f"Skipping {same_year} same-year resale pairs (no annualized change)")

    return pairs[columns].reset_index(drop=True)


def avg_annual_price_increase(pairs: pd.DataFrame) -> pd.DataFrame:
    """
    Average annualized price change per district.

    Districts with no valid pair are absent from the result.

    Returns:
        DataFrame with columns: district, avg_annual_price_increase
    """
    logger.info("Calculating average annual price increase per district...")

    valid = pairs.dropna(subset=['annualized_change'])
    result = (
        valid.groupby('district')['annualized_change']
        .mean()
        .rename(PRICE_METRIC)
        .reset_index()
    )
    result = result.astype({'district': 'int64', PRICE_METRIC: float})

    logger.info(f"Price trend available for {len(result)} districts ({len(valid)} valid pairs)")
    return result


def monthly_sales_counts(sales_df: pd.DataFrame) -> pd.DataFrame:
    """
    Count all sales per district and calendar month.

    Returns:
        DataFrame with columns: district, year, month, sales_count
    """
    buckets = sales_df.assign(
        year=sales_df['sale_date'].dt.year,
        month=sales_df['sale_date'].dt.month,
    )
    return (
        buckets.groupby(['district', 'year', 'month'])
        .size()
        .reset_index(name='sales_count')
    )


def avg_monthly_sales(counts: pd.DataFrame) -> pd.DataFrame:
    """
    Average monthly sales per district.

    Only months that had at least one sale in the district exist as buckets,
    so quiet months do not pull the average down.

    Returns:
        DataFrame with columns: district, avg_monthly_sales
    """
    logger.info("Calculating average monthly sales per district...")

    result = (
        counts.groupby('district')['sales_count']
        .mean()
        .rename(VOLUME_METRIC)
        .reset_index()
    )
    logger.info(f"Sales volume available for {len(result)} districts")
    return result


def district_metrics(price: pd.DataFrame, volume: pd.DataFrame) -> pd.DataFrame:
    """Join both district metrics; districts without a price trend drop out."""
    merged = price.merge(volume, on='district', how='inner')

    excluded = sorted(set(volume['district']) - set(price['district']))
    if excluded:
        logger.warning(
            f"⚠️  {len(excluded)} district(s) have no annualized price data and are not scored: {excluded}"
        )

    return merged.sort_values('district').reset_index(drop=True)


def zscore(values: pd.Series, name: str = None) -> pd.Series:
    """
    Population Z-score of a metric column.

    If the column has no spread (standard deviation zero or undefined), a
    warning is logged and every Z-score is 0.0.
    """
    name = name or values.name
    mean = values.mean()
    std = values.std(ddof=0)

    if pd.isna(std) or np.isclose(std, 0.0):
        logger.warning(
            f"⚠️  Cannot normalize {name}: standard deviation is zero across "
            f"{len(values)} district(s). It will not contribute to the score."
        )
        return pd.Series(0.0, index=values.index, name=values.name)

    return (values - mean) / std


def round_half_away(values: pd.Series, decimals: int = 2) -> pd.Series:
    """Round ties away from zero (0.125 -> 0.13, -0.125 -> -0.13), like SQL ROUND."""
    scale = 10 ** decimals
    return np.sign(values) * np.floor(values.abs() * scale + 0.5) / scale


def score_districts(
    metrics: pd.DataFrame,
    price_weight: float = PRICE_WEIGHT,
    volume_weight: float = VOLUME_WEIGHT,
) -> pd.DataFrame:
    """
    Z-normalize both metrics and combine them into an investment score.

    Args:
        metrics: Output of district_metrics()
        price_weight: Weight of the price-trend Z-score
        volume_weight: Weight of the sales-volume Z-score

    Returns:
        DataFrame with columns: district, avg_annual_price_increase,
        avg_monthly_sales, z_price, z_volume, investment_score, rank;
        sorted by investment_score descending, then district ascending
    """
    logger.info("Scoring districts...")

    scored = metrics.copy()
    scored['z_price'] = zscore(scored[PRICE_METRIC], PRICE_METRIC)
    scored['z_volume'] = zscore(scored[VOLUME_METRIC], VOLUME_METRIC)

    raw = price_weight * scored['z_price'] + volume_weight * scored['z_volume']
    # + 0.0 turns -0.0 into 0.0 so it never prints as "-0.00"
    scored['investment_score'] = round_half_away(raw, 2) + 0.0

    scored = scored.sort_values(
        ['investment_score', 'district'], ascending=[False, True], kind='stable'
    ).reset_index(drop=True)
    scored['rank'] = range(1, len(scored) + 1)

    # Sanity check
    if len(scored) < 2:
        logger.warning(f"⚠️  SANITY CHECK: only {len(scored)} district(s) could be scored. Ranking is meaningless.")
    else:
        logger.info(f"✅ Scored {len(scored)} districts")

    return scored


def run_transformation(sales_df: pd.DataFrame) -> dict:
    """
    Execute the full district scoring chain.

    Returns:
        dict: Intermediate and final DataFrames keyed by name, plus a
        'summary' dict of counts for reporting
    """
    logger.info("=" * 60)
    logger.info("STARTING TRANSFORMATION")
    logger.info("=" * 60)

    results = {}

    results['repeat_sales'] = repeat_sales(sales_df)
    results['price_pairs'] = price_change_pairs(results['repeat_sales'])
    results['price_trends'] = avg_annual_price_increase(results['price_pairs'])
    results['monthly_counts'] = monthly_sales_counts(sales_df)
    results['monthly_sales'] = avg_monthly_sales(results['monthly_counts'])
    results['district_metrics'] = district_metrics(results['price_trends'], results['monthly_sales'])
    results['scores'] = score_districts(results['district_metrics'])

    pairs = results['price_pairs']
    excluded = sorted(set(results['monthly_sales']['district']) - set(results['scores']['district']))
    results['summary'] = {
        'sales': len(sales_df),
        'repeat_properties': int(results['repeat_sales']['tax_key'].nunique()),
        'price_pairs': len(pairs),
        'same_year_pairs': int(pairs['annualized_change'].isna().sum()),
        'districts': int(sales_df['district'].nunique()),
        'districts_scored': len(results['scores']),
        'excluded_districts': [int(d) for d in excluded],
    }

    logger.info("✅ Transformation complete")
    return results


if __name__ == "__main__":
    import os
    from pathlib import Path

    from ingest import run_ingestion

    results = run_transformation(run_ingestion(Path(os.environ.get("SALES_CSV", "data/property_sales.csv"))))

    print("\n" + "=" * 60)
    print("DISTRICT INVESTMENT SCORES")
    print("=" * 60)
    print(results['scores'][['rank', 'district', 'investment_score']].to_string(index=False))
