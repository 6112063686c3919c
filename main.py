"""
District Investment Pulse — Main Orchestrator

Master conductor for the batch pipeline:
1. Ingestion (property sales export)
2. Transformation (price trend + sales volume -> investment score)
3. Delivery (ranked scores CSV, metric breakdown, HTML report)

The run is all-or-nothing: outputs are only written once the
transformation has completed, and any failure exits non-zero.
"""

import os
import sys
import logging
from pathlib import Path
import time

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from ingest import run_ingestion, log_error, DataQualityError
from transform import run_transformation
from deliver import deliver_report

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def resolve_log_level(name: str) -> str:
    """Return a known logging level name, falling back to INFO."""
    level = name.strip().upper()
    if isinstance(logging.getLevelName(level), int):
        return level
    logger.warning(f"⚠️  Unknown LOG_LEVEL {name!r}, using INFO")
    return "INFO"


def load_settings() -> dict:
    """
    Read run settings from the environment.

    Environment variables:
    - SALES_CSV: Input sales file (comma- or tab-separated)
    - OUTPUT_DIR: Directory for the scores, metrics and report
    - PROPERTY_TYPES: Optional comma-separated list of property types to keep
    - LOG_LEVEL: Root logging level
    """
    property_types = [
        t.strip() for t in os.environ.get("PROPERTY_TYPES", "").split(",") if t.strip()
    ]
    return {
        'sales_csv': Path(os.environ.get("SALES_CSV", "data/property_sales.csv")),
        'output_dir': Path(os.environ.get("OUTPUT_DIR", "data/output")),
        'property_types': property_types,
        'log_level': resolve_log_level(os.environ.get("LOG_LEVEL", "INFO")),
    }


def calculate_stats(sales_count: int, summary: dict, start_time: float) -> dict:
    """
    Calculate pipeline execution statistics.

    Returns:
        dict: Stats for the report footer
    """
    execution_time = time.time() - start_time

    return {
        'records_ingested': sales_count,
        'districts_scored': summary.get('districts_scored', 0),
        'excluded_districts': summary.get('excluded_districts', []),
        'execution_time': f"{execution_time:.1f}s",
    }


def main() -> int:
    """
    Main pipeline orchestrator.

    Returns:
        int: Process exit code (0 on success, 1 on failure)
    """
    settings = load_settings()
    logging.getLogger().setLevel(settings['log_level'])

    logger.info("=" * 80)
    logger.info("DISTRICT INVESTMENT PULSE — BATCH PIPELINE")
    logger.info("=" * 80)

    start_time = time.time()

    # Phase 1: Ingestion
    logger.info("\n📥 PHASE 1: INGESTION")
    try:
        sales_df = run_ingestion(settings['sales_csv'], settings['property_types'])
    except DataQualityError as e:
        log_error(f"Data quality check failed: {e}")
        return 1
    except OSError as e:
        log_error(f"Could not read sales data: {type(e).__name__}: {str(e)}")
        return 1

    # Phase 2: Transformation
    logger.info("\n🧮 PHASE 2: TRANSFORMATION")
    try:
        results = run_transformation(sales_df)
    except Exception as e:
        log_error(f"Transformation failed: {type(e).__name__}: {str(e)}")
        return 1

    # Phase 3: Delivery
    logger.info("\n💾 PHASE 3: DELIVERY")
    stats = calculate_stats(len(sales_df), results['summary'], start_time)

    try:
        deliver_report(results, stats, settings['output_dir'])
    except OSError as e:
        log_error(f"Delivery failed: {type(e).__name__}: {str(e)}")
        return 1

    # Success
    logger.info("\n" + "=" * 80)
    logger.info("✅ PIPELINE COMPLETED SUCCESSFULLY")
    logger.info(f"Scored {stats['districts_scored']} districts in {stats['execution_time']}")
    logger.info("=" * 80)

    return 0


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
