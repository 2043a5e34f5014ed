"""
Command line analysis of a daily temperature file.

Reads a headerless CSV (year,month,day,TX,TN), filters and aggregates it and
prints the resulting buckets, one tab separated line each (buckets without data
print an empty value). Optionally writes them as CSV.

Usage:
    python -m scripts.analyze_climate <csv_file> [--period annual|seasonal|monthly]
        [--field TX|TN] [--kind average|countAbove|countBelow] [--threshold T]
        [--start-year Y] [--end-year Y] [--month 1-12|all] [--season NAME|all]
        [--output chart_data.csv] [--log-level INFO]
"""

import argparse
import math
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from app.config import settings
from app.schemas.analysis import (
    ALL,
    AnalysisConfig,
    FilterSpec,
    MetricKind,
    MetricSpec,
    PeriodType,
    Season,
    TemperatureField,
)
from app.utils.aggregation import aggregate_records, filter_records
from app.utils.chart import period_label
from app.utils.export import export_buckets_csv
from app.utils.loader import RecordParseError, parse_records
from app.utils.logging_config import setup_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Aggregate daily temperature records into annual, seasonal or monthly summaries"
    )
    parser.add_argument("csv_file", type=str, help="Headerless CSV: year,month,day,TX,TN")
    parser.add_argument(
        "--period",
        choices=[p.value for p in PeriodType],
        default=PeriodType.ANNUAL.value,
        help="Grouping period (default: annual)"
    )
    parser.add_argument(
        "--field",
        choices=[f.value for f in TemperatureField],
        default=TemperatureField.TX.value,
        help="Temperature field (default: TX)"
    )
    parser.add_argument(
        "--kind",
        choices=[k.value for k in MetricKind],
        default=MetricKind.AVERAGE.value,
        help="Metric (default: average)"
    )
    parser.add_argument("--threshold", type=float, default=0.0, help="Threshold °C for count metrics")
    parser.add_argument("--start-year", type=int, default=None, help="First year (inclusive)")
    parser.add_argument("--end-year", type=int, default=None, help="Last year (inclusive)")
    parser.add_argument("--month", default=ALL, help="Month 1-12 or 'all' (default: all)")
    parser.add_argument(
        "--season",
        choices=[ALL] + [s.value for s in Season],
        default=ALL,
        help="Season filter (default: all)"
    )
    parser.add_argument("--delimiter", default=settings.CSV_DELIMITER, help="Column separator")
    parser.add_argument("--has-header", action="store_true", help="Skip the first line of the file")
    parser.add_argument("--output", type=str, default=None, help="Write buckets as CSV to this path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Configure console logging at this level"
    )
    return parser


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Build the analysis configuration; raises ValidationError if invalid."""
    return AnalysisConfig(
        filter=FilterSpec(
            year_start=args.start_year,
            year_end=args.end_year,
            month=args.month,
            season=args.season,
        ),
        period=PeriodType(args.period),
        metric=MetricSpec(
            field=TemperatureField(args.field),
            kind=MetricKind(args.kind),
            threshold=args.threshold,
        ),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one analysis from the command line.

    Returns:
        0 on success, 1 if the file cannot be read or parsed, 2 on invalid options
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        setup_logging(level=args.log_level, console_only=True)

    try:
        config = build_config(args)
    except ValidationError as e:
        logger.error(f"Invalid analysis options: {e}")
        return 2

    path = Path(args.csv_file)
    if not path.exists():
        logger.error(f"File not found: {args.csv_file}")
        return 1

    try:
        records = parse_records(path.read_bytes(), delimiter=args.delimiter, has_header=args.has_header)
    except RecordParseError as e:
        logger.error(f"File parse failed: {e}")
        return 1

    filtered = filter_records(records, config.filter)
    buckets = aggregate_records(filtered, config.period, config.metric)

    logger.info("=" * 60)
    logger.info(f"Records loaded: {len(records)}")
    logger.info(f"Records after filter: {len(filtered)}")
    logger.info(f"Buckets: {len(buckets)} ({config.period.value}, "
                f"{config.metric.field.value} {config.metric.kind.value})")
    logger.info("=" * 60)

    for bucket in buckets:
        value = "" if math.isnan(bucket.value) else f"{bucket.value:g}"
        print(f"{period_label(bucket)}\t{value}")

    if args.output:
        Path(args.output).write_text(
            export_buckets_csv(buckets, config.period, args.delimiter), encoding="utf-8"
        )
        logger.info(f"Wrote {len(buckets)} rows to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
