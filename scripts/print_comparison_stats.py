#!/usr/bin/env python3
"""
Operator script to print dual-mode comparison statistics.

Usage:
    python scripts/print_comparison_stats.py [--limit 20] [--json] [--publish-metrics]

Output:
    Summary of comparator activity including:
    - Kill switch state
    - Total mismatch and alert counts
    - Mismatch-type breakdown of the recent sample
    - Most recent mismatches and alerts
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.config.settings import Settings, ConfigurationError  # noqa: E402
from src.database.exceptions import DynamoDBException  # noqa: E402
from src.domain.comparison import StatsSnapshot  # noqa: E402
from src.main import build_stats_aggregator  # noqa: E402
from src.monitoring.stats import ComparisonMetricsPublisher  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def print_stats_summary(snapshot: StatsSnapshot) -> None:
    """Print a human-readable summary of a stats snapshot."""
    print("\n" + "=" * 80)
    print("DUAL-MODE AUTHORIZATION COMPARISON")
    print("=" * 80)

    status = "✓ ENABLED" if snapshot.enabled else "✗ DISABLED"
    print(f"\nComparator: {status}")
    print(f"Total mismatches: {snapshot.mismatch_count}")
    print(f"Total alerts:     {snapshot.alerts_count}")

    sample_size = len(snapshot.recent_mismatches)
    print("\n" + "-" * 80)
    print(f"BREAKDOWN (last {sample_size} mismatches)")
    print("-" * 80)
    for mismatch_type, count in sorted(snapshot.breakdown.items()):
        print(f"  - {mismatch_type}: {count}")

    print("\n" + "-" * 80)
    print("RECENT MISMATCHES")
    print("-" * 80)
    for record in snapshot.recent_mismatches:
        data = record.data
        print(
            f"  [{data.get('createdAt')}] {data.get('tenantId')}/{data.get('userId')} "
            f"{data.get('permission')} {data.get('mismatchType')} ({data.get('severity')})"
        )

    print("\n" + "-" * 80)
    print("RECENT ALERTS")
    print("-" * 80)
    for record in snapshot.recent_alerts:
        data = record.data
        print(
            f"  [{data.get('createdAt')}] {data.get('tenantId')}/{data.get('userId')} "
            f"{data.get('permission')} {data.get('type')}"
        )

    print("\n" + "=" * 80)
    print(f"Last updated: {snapshot.to_dict()['lastUpdated']}")
    print("=" * 80 + "\n")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print dual-mode comparison statistics")
    parser.add_argument("--limit", type=int, default=None, help="Recent records to fetch")
    parser.add_argument("--json", action="store_true", help="Print the raw snapshot JSON")
    parser.add_argument(
        "--publish-metrics",
        action="store_true",
        help="Also publish the snapshot to CloudWatch",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = Settings()
        aggregator = build_stats_aggregator(settings)
        limit = settings.stats_limit if args.limit is None else args.limit
        snapshot = aggregator.get_stats(limit)

        if args.json:
            print(json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2, default=str))
        else:
            print_stats_summary(snapshot)

        if args.publish_metrics:
            ComparisonMetricsPublisher(region_name=settings.region_name).publish_snapshot(snapshot)

        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        return 1
    except DynamoDBException as e:
        logger.error(f"Failed to read comparison stores: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
