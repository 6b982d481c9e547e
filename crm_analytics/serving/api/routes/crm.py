"""
CRM Dashboard Endpoints

REST API behind the admin console's CRM dashboard: the metrics overview,
the report tabs with search/filter/sort, report exports, and the live
snapshot kept current by the recomputation controller.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.aggregation.service import DashboardService
from crm_analytics.realtime.controller import RecomputationController
from crm_analytics.reporting.export import ExportFormat, ReportExporter
from crm_analytics.reporting.grid import DataGrid, SortDirection
from crm_analytics.reporting.views import ReportView
from crm_analytics.serving.api.dependencies import (
    get_controller,
    get_exporter,
    get_period,
    get_service,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


def apply_query(
    grid: DataGrid,
    search: Optional[str],
    sort: Optional[str],
    direction: SortDirection,
    filters: List[str],
) -> None:
    """Apply request query parameters; filters are given as key:value"""
    grid.set_search(search)
    for item in filters:
        key, sep, value = item.partition(":")
        if not sep:
            logger.warning("Ignoring malformed filter", filter=item)
            continue
        grid.set_filter(key, value)
    if sort:
        grid.set_sort(sort, direction)


def describe_view(view: ReportView) -> Dict[str, Any]:
    grid = view.grid
    rows = grid.export_rows()
    return {
        "name": view.name,
        "title": view.title,
        "subtitle": view.subtitle,
        "summary": grid.summary,
        "total": grid.total_count,
        "count": len(rows),
        "columns": [
            {"key": c.key, "label": c.label, "sortable": c.sortable} for c in grid.columns
        ],
        "filters": [
            {
                "key": f.key,
                "label": f.label,
                "options": [{"value": value, "label": label} for value, label in f.options],
            }
            for f in grid.filters
        ],
        "sort": (
            {"key": grid.sort.key, "direction": grid.sort.direction.value} if grid.sort else None
        ),
        "rows": rows,
    }


@router.get("/overview")
async def get_overview(
    period: ReportingPeriod = Depends(get_period),
    service: DashboardService = Depends(get_service),
) -> Dict[str, Any]:
    """Dashboard snapshot for the requested period."""
    snapshot = await service.dashboard(period)
    return snapshot.to_dict()


@router.get("/reports/{name}")
async def get_report(
    name: str,
    search: Optional[str] = Query(None, description="Search text for the report's search column"),
    sort: Optional[str] = Query(None, description="Column key to sort by"),
    direction: SortDirection = Query(SortDirection.ASC),
    filter: List[str] = Query([], description="Filters as key:value"),
    period: ReportingPeriod = Depends(get_period),
    service: DashboardService = Depends(get_service),
) -> Dict[str, Any]:
    """One report tab with search, filters and sort applied."""
    view = await service.report(name, period)
    apply_query(view.grid, search, sort, direction, filter)
    return describe_view(view)


@router.get("/reports/{name}/export")
async def export_report(
    name: str,
    format: ExportFormat = Query(ExportFormat.CSV),
    search: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    direction: SortDirection = Query(SortDirection.ASC),
    filter: List[str] = Query([]),
    period: ReportingPeriod = Depends(get_period),
    service: DashboardService = Depends(get_service),
    exporter: ReportExporter = Depends(get_exporter),
) -> Response:
    """Download the current view of a report as CSV, JSON or printable HTML."""
    view = await service.report(name, period)
    apply_query(view.grid, search, sort, direction, filter)
    artifact = exporter.export(view.grid, format, view.export_filename, title=view.title)

    disposition = "inline" if format == ExportFormat.HTML else "attachment"
    return Response(
        content=artifact.content,
        media_type=artifact.mime_type,
        headers={"Content-Disposition": f'{disposition}; filename="{artifact.filename}"'},
    )


def describe_live(controller: RecomputationController) -> Dict[str, Any]:
    period = controller.period
    return {
        "state": controller.state.value,
        "generation": controller.generation,
        "period": {
            "date_from": period.date_from.isoformat(),
            "date_to": period.date_to.isoformat(),
            "status": period.status_value,
            "rolling": controller.pinned_period is None,
        },
        "last_error": str(controller.last_error) if controller.last_error else None,
        "snapshot": controller.snapshot.to_dict() if controller.snapshot else None,
    }


async def recompute_live(controller: RecomputationController) -> Dict[str, Any]:
    await controller.refresh()
    if controller.last_error is not None:
        raise HTTPException(status_code=503, detail=str(controller.last_error))
    return describe_live(controller)


@router.get("/live")
async def get_live(controller: RecomputationController = Depends(get_controller)) -> Dict[str, Any]:
    """Latest snapshot kept current by change notifications."""
    return describe_live(controller)


@router.post("/live/refresh")
async def refresh_live(controller: RecomputationController = Depends(get_controller)) -> Dict[str, Any]:
    """Recompute the live snapshot now."""
    return await recompute_live(controller)


@router.put("/live/period")
async def pin_live_period(
    period: ReportingPeriod = Depends(get_period),
    controller: RecomputationController = Depends(get_controller),
) -> Dict[str, Any]:
    """Pin the live snapshot to a period and recompute it."""
    controller.set_period(period)
    return await recompute_live(controller)


@router.delete("/live/period")
async def reset_live_period(controller: RecomputationController = Depends(get_controller)) -> Dict[str, Any]:
    """Return the live snapshot to the rolling default period."""
    controller.set_period(None)
    return await recompute_live(controller)
