import sys
from pathlib import Path

import pandas as pd
import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

# Prefer repo sources over any installed modules.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


RAW_HEADER = "PropType,Taxkey,Address,District,Nbhd,Year_Built,Sale_date,Sale_price"


@pytest.fixture
def make_sales():
    """Build a loaded-sales frame from (tax_key, district, "YYYY-MM", price) tuples."""

    def _make(rows):
        df = pd.DataFrame(rows, columns=['tax_key', 'district', 'sale_date', 'sale_price'])
        df['tax_key'] = df['tax_key'].astype(str)
        df['district'] = df['district'].astype('int64')
        df['sale_date'] = pd.to_datetime(df['sale_date'] + '-01')
        df['sale_price'] = df['sale_price'].astype('int64')
        return df

    return _make


@pytest.fixture
def sample_csv(tmp_path):
    """A small raw export: two scoreable districts and one same-year-only district."""
    lines = [
        RAW_HEADER,
        "Residential,0001,100 N MAIN ST,1,40,1925,2010-01,100000",
        "Residential,0001,100 N MAIN ST,1,40,1925,2015-01,150000",
        "Residential,0002,102 N MAIN ST,1,40,1930,2015-01,120000",
        "Condominium,0003,5 LAKE DR #2,2,61,1988,2011-03,80000",
        "Condominium,0003,5 LAKE DR #2,2,61,1988,2013-03,90000",
        "Residential,0004,77 W ELM AVE,3,12,1950,2012-05,50000",
        "Residential,0004,77 W ELM AVE,3,12,1950,2012-09,60000",
    ]
    path = tmp_path / "property_sales.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
