"""
Report Export

Renders a grid's current materialized view (after search, filter and sort)
as CSV, JSON or a printable HTML document, and hands the result to a file
delivery or print surface. An empty view is an error; nothing is produced.
"""

import csv
import html
import io
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import structlog

from crm_analytics.config import get_settings
from crm_analytics.errors import EmptyExportError
from crm_analytics.reporting.grid import DataGrid, display_text

logger = structlog.get_logger(__name__)

UTF8_BOM = "\ufeff"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    HTML = "html"


MIME_TYPES = {
    ExportFormat.CSV: "text/csv;charset=utf-8",
    ExportFormat.JSON: "application/json",
    ExportFormat.HTML: "text/html;charset=utf-8",
}


@dataclass(frozen=True)
class ExportArtifact:
    """A rendered export ready for delivery"""
    content: bytes
    filename: str
    mime_type: str
    record_count: int

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class FileDelivery(ABC):
    """Receives finished export files (browser download, disk, object store)"""

    @abstractmethod
    def deliver(self, artifact: ExportArtifact):
        """Hand the artifact over for download or storage"""


class PrintSurface(ABC):
    """Host surface that renders and prints an HTML document"""

    @abstractmethod
    def print_html(self, document: str) -> None:
        """Render and print the document"""


class LocalDirectoryDelivery(FileDelivery):
    """Writes artifacts into a directory on local disk"""

    def __init__(self, export_dir: Optional[str] = None):
        self.export_dir = Path(export_dir or get_settings().reporting.export_dir)

    def deliver(self, artifact: ExportArtifact) -> Path:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        path = self.export_dir / artifact.filename
        path.write_bytes(artifact.content)
        logger.info(
            "Export written",
            path=str(path),
            records=artifact.record_count,
            mime_type=artifact.mime_type,
        )
        return path


PRINT_STYLES = """
    body { font-family: Arial, sans-serif; padding: 20px; color: #1f2937; }
    h1 { font-size: 20px; margin-bottom: 4px; }
    .meta { color: #6b7280; font-size: 12px; margin-bottom: 16px; }
    table { width: 100%; border-collapse: collapse; font-size: 12px; }
    th, td { border: 1px solid #e5e7eb; padding: 6px 8px; text-align: left; }
    th { background: #f3f4f6; font-weight: 600; }
    tr:nth-child(even) td { background: #fafafa; }
    @media print { body { padding: 0; } }
"""


class ReportExporter:
    """
    Renders grid views into export artifacts.

    Example:
        exporter = ReportExporter()
        artifact = exporter.to_csv(grid, "orders_report")
        LocalDirectoryDelivery().deliver(artifact)
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(get_settings().reporting.tzinfo))

    def _filename(self, base: str, fmt: ExportFormat) -> str:
        return f"{base}_{self._clock().date().isoformat()}.{fmt.value}"

    @staticmethod
    def _require_rows(grid: DataGrid, report: str) -> list:
        rows = grid.view()
        if not rows:
            logger.warning("Export requested on empty view", report=report)
            raise EmptyExportError(report)
        return rows

    def to_csv(self, grid: DataGrid, base: str) -> ExportArtifact:
        """Header of column labels, then one fully quoted line per row"""
        rows = self._require_rows(grid, base)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([column.label for column in grid.columns])
        for row in rows:
            writer.writerow([display_text(column.value(row)) for column in grid.columns])

        return ExportArtifact(
            content=(UTF8_BOM + buffer.getvalue()).encode("utf-8"),
            filename=self._filename(base, ExportFormat.CSV),
            mime_type=MIME_TYPES[ExportFormat.CSV],
            record_count=len(rows),
        )

    def to_json(self, grid: DataGrid, base: str) -> ExportArtifact:
        """Pretty-printed array of column-keyed records"""
        records = grid.export_rows(self._require_rows(grid, base))
        document = json.dumps(records, indent=2, ensure_ascii=False, default=str)

        return ExportArtifact(
            content=document.encode("utf-8"),
            filename=self._filename(base, ExportFormat.JSON),
            mime_type=MIME_TYPES[ExportFormat.JSON],
            record_count=len(records),
        )

    def render_html(self, grid: DataGrid, title: str) -> str:
        """Self-contained printable document for the current view"""
        return self._html_document(grid, title, self._require_rows(grid, title))

    def _html_document(self, grid: DataGrid, title: str, rows: list) -> str:
        generated = self._clock().strftime("%Y-%m-%d %H:%M:%S")

        header = "".join(f"<th>{html.escape(column.label)}</th>" for column in grid.columns)
        body = "\n".join(
            "<tr>"
            + "".join(f"<td>{html.escape(column.display(row))}</td>" for column in grid.columns)
            + "</tr>"
            for row in rows
        )

        return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{html.escape(title)}</title>
<style>{PRINT_STYLES}</style>
</head>
<body>
<h1>{html.escape(title)}</h1>
<div class="meta">Generated: {generated} &middot; Total Records: {len(rows)}</div>
<table>
<thead><tr>{header}</tr></thead>
<tbody>
{body}
</tbody>
</table>
</body>
</html>
"""

    def to_html(self, grid: DataGrid, title: str, base: str) -> ExportArtifact:
        rows = self._require_rows(grid, title)
        document = self._html_document(grid, title, rows)
        return ExportArtifact(
            content=document.encode("utf-8"),
            filename=self._filename(base, ExportFormat.HTML),
            mime_type=MIME_TYPES[ExportFormat.HTML],
            record_count=len(rows),
        )

    def print_view(self, grid: DataGrid, title: str, surface: PrintSurface) -> None:
        surface.print_html(self.render_html(grid, title))

    def export(self, grid: DataGrid, fmt: ExportFormat, base: str, title: Optional[str] = None) -> ExportArtifact:
        fmt = ExportFormat(fmt)
        if fmt == ExportFormat.CSV:
            artifact = self.to_csv(grid, base)
        elif fmt == ExportFormat.JSON:
            artifact = self.to_json(grid, base)
        else:
            artifact = self.to_html(grid, title or base, base)

        logger.info(
            "Report exported",
            report=base,
            format=fmt.value,
            records=artifact.record_count,
        )
        return artifact
