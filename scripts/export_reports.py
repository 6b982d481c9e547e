"""
Report Export Script

Runs the CRM dashboard for a period and writes every report tab to the
export directory, from generated demo data or the configured database.

Usage:
    python scripts/export_reports.py --demo --days 30 --format csv
    python scripts/export_reports.py --format html --output ./exports
"""

import argparse
import asyncio

from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.aggregation.service import DashboardService
from crm_analytics.config import get_settings
from crm_analytics.config.logging import configure_logging
from crm_analytics.data.generators import DemoDataGenerator
from crm_analytics.database.connection import close_database, init_database
from crm_analytics.errors import EmptyExportError
from crm_analytics.reporting.export import ExportFormat, LocalDirectoryDelivery, ReportExporter
from crm_analytics.reporting.views import REPORT_NAMES
from crm_analytics.sources.database import DatabaseDataSource


async def export_all(demo: bool, days: int, fmt: ExportFormat, output: str) -> None:
    if demo:
        source = DemoDataGenerator().generate_all().to_source()
    else:
        await init_database()
        source = DatabaseDataSource()

    service = DashboardService(source)
    exporter = ReportExporter()
    delivery = LocalDirectoryDelivery(output)
    period = ReportingPeriod.last_days(days, tz=get_settings().reporting.tzinfo)

    try:
        for name in REPORT_NAMES:
            view = await service.report(name, period)
            try:
                artifact = exporter.export(view.grid, fmt, view.export_filename, title=view.title)
            except EmptyExportError:
                print(f"  {name}: nothing to export")
                continue
            path = delivery.deliver(artifact)
            print(f"  {name}: {artifact.record_count} rows -> {path}")
    finally:
        if not demo:
            await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export CRM report tabs")
    parser.add_argument("--demo", action="store_true", help="Use generated demo data")
    parser.add_argument("--days", type=int, default=30, help="Period length in days (default: 30)")
    parser.add_argument(
        "--format",
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.CSV.value,
        help="Export format (default: csv)",
    )
    parser.add_argument("--output", default=None, help="Output directory (default: REPORTING_EXPORT_DIR)")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(export_all(args.demo, args.days, ExportFormat(args.format), args.output))
