"""
District Investment Pulse — Output Delivery

Writes the ranked district scores as CSV, the per-district metric breakdown,
and a static HTML summary rendered from a Jinja2 template.
"""

import logging
from datetime import datetime
from pathlib import Path

import pandas as pd
from jinja2 import Template

from transform import PRICE_WEIGHT, VOLUME_WEIGHT

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SCORES_FILE = "investment_scores.csv"
METRICS_FILE = "district_metrics.csv"
REPORT_FILE = "report.html"

METRIC_COLUMNS = [
    'rank', 'district', 'avg_annual_price_increase', 'avg_monthly_sales',
    'z_price', 'z_volume', 'investment_score',
]


# HTML Report Template
REPORT_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>District Investment Pulse</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 800px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }
        .header {
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            color: white;
            padding: 30px;
            border-radius: 8px 8px 0 0;
            text-align: center;
        }
        .header h1 { margin: 0; font-size: 28px; }
        .content {
            background: white;
            padding: 30px;
            border-radius: 0 0 8px 8px;
        }
        .metric-section {
            margin: 30px 0;
            border-left: 4px solid #667eea;
            padding-left: 20px;
        }
        .metric-section h2 { margin-top: 0; color: #667eea; font-size: 20px; }
        table { width: 100%; border-collapse: collapse; font-size: 14px; }
        th { background-color: #f8f9fa; padding: 12px; text-align: left; border-bottom: 2px solid #dee2e6; }
        td { padding: 10px 12px; border-bottom: 1px solid #dee2e6; }
        .positive { color: #155724; font-weight: 600; }
        .negative { color: #721c24; font-weight: 600; }
        .no-data { color: #999; font-style: italic; text-align: center; padding: 20px; }
        .footer { margin-top: 30px; padding: 20px; background-color: #f8f9fa; border-radius: 8px; font-size: 13px; color: #666; }
    </style>
</head>
<body>
    <div class="header">
        <h1>🏘️ District Investment Pulse</h1>
        <p>{{ date }}</p>
    </div>

    <div class="content">
        <div class="metric-section">
            <h2>📈 District Ranking</h2>
            <p>Score = {{ price_weight }} × Z(avg annual price increase) + {{ volume_weight }} × Z(avg monthly sales).</p>
            {% if scores|length > 0 %}
            <table>
                <thead>
                    <tr>
                        <th>Rank</th>
                        <th>District</th>
                        <th>Avg Annual Increase</th>
                        <th>Avg Monthly Sales</th>
                        <th>Score</th>
                    </tr>
                </thead>
                <tbody>
                    {% for row in scores %}
                    <tr>
                        <td>{{ row.rank }}</td>
                        <td>{{ row.district }}</td>
                        <td>${{ "{:,.0f}".format(row.avg_annual_price_increase) }}</td>
                        <td>{{ "{:.2f}".format(row.avg_monthly_sales) }}</td>
                        <td class="{{ 'positive' if row.investment_score >= 0 else 'negative' }}">{{ "{:.2f}".format(row.investment_score) }}</td>
                    </tr>
                    {% endfor %}
                </tbody>
            </table>
            {% else %}
            <div class="no-data">No district could be scored.</div>
            {% endif %}
        </div>

        {% if summary.excluded_districts %}
        <div class="metric-section">
            <h2>⚠️ Not Scored</h2>
            <p>No repeat sales spanning different years in district(s): {{ summary.excluded_districts|join(', ') }}.</p>
        </div>
        {% endif %}

        <div class="footer">
            <strong>Pipeline Health:</strong><br>
            Sales Loaded: {{ stats.records_ingested }}<br>
            Repeat-Sold Properties: {{ summary.repeat_properties }}<br>
            Resale Pairs: {{ summary.price_pairs }} ({{ summary.same_year_pairs }} same-year, skipped)<br>
            Districts Scored: {{ summary.districts_scored }} of {{ summary.districts }}<br>
            Execution Time: {{ stats.execution_time }}
        </div>
    </div>
</body>
</html>
"""


def write_scores(scores: pd.DataFrame, path: Path) -> Path:
    """
    Write the ranked (district, investment_score) table.

    Scores are written with exactly two decimals, in ranked order.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    scores[['district', 'investment_score']].to_csv(path, index=False, float_format='%.2f')
    logger.info(f"✅ Saved {len(scores)} district scores to {path}")
    return path


def write_district_metrics(scores: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    scores[METRIC_COLUMNS].to_csv(path, index=False, float_format='%.4f')
    logger.info(f"Saved district metric breakdown to {path}")
    return path


def render_report(results: dict, stats: dict) -> str:
    """
    Render the HTML summary from transformation results.

    Args:
        results: Dict from transform.run_transformation()
        stats: Pipeline execution statistics

    Returns:
        Rendered HTML string
    """
    template = Template(REPORT_TEMPLATE)

    scores = results.get('scores', pd.DataFrame())

    return template.render(
        date=datetime.now().strftime("%B %d, %Y"),
        price_weight=PRICE_WEIGHT,
        volume_weight=VOLUME_WEIGHT,
        scores=scores.to_dict('records') if len(scores) else [],
        summary=results.get('summary', {}),
        stats=stats,
    )


def write_report(results: dict, stats: dict, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(results, stats), encoding="utf-8")
    logger.info(f"Saved HTML report to {path}")
    return path


def deliver_report(results: dict, stats: dict, output_dir: Path) -> dict:
    """
    Write every output of the run into output_dir.

    Returns:
        dict: Output name -> written path
    """
    logger.info("=" * 60)
    logger.info("STARTING DELIVERY")
    logger.info("=" * 60)

    output_dir = Path(output_dir)
    scores = results['scores']

    written = {
        'scores': write_scores(scores, output_dir / SCORES_FILE),
        'metrics': write_district_metrics(scores, output_dir / METRICS_FILE),
        'report': write_report(results, stats, output_dir / REPORT_FILE),
    }

    logger.info("✅ Report delivered successfully")
    return written
