"""
API Dependencies

Request-scoped access to the services created in the application lifespan,
and the reporting period query parameters shared by the CRM endpoints.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException, Query, Request

from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.aggregation.service import DashboardService
from crm_analytics.config import get_settings
from crm_analytics.models.records import OrderStatus
from crm_analytics.realtime.controller import RecomputationController
from crm_analytics.reporting.export import ReportExporter


def get_service(request: Request) -> DashboardService:
    return request.app.state.service


def get_controller(request: Request) -> RecomputationController:
    return request.app.state.controller


def get_exporter(request: Request) -> ReportExporter:
    return request.app.state.exporter


def get_period(
    date_from: Optional[date] = Query(None, description="First day of the period (inclusive)"),
    date_to: Optional[date] = Query(None, description="Last day of the period (inclusive)"),
    status: Optional[OrderStatus] = Query(None, description="Only include orders in this status"),
) -> ReportingPeriod:
    """Resolve the period filter; missing bounds default to the last N days"""
    reporting = get_settings().reporting
    today = datetime.now(reporting.tzinfo).date()
    days = timedelta(days=reporting.default_period_days)

    if date_to is None:
        date_to = max(today, date_from) if date_from is not None else today
    if date_from is None:
        date_from = date_to - days

    try:
        return ReportingPeriod(date_from, date_to, status)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
