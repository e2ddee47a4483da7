# GET /api/analytics/*

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from app.api.params import (
    DEFAULT_COHORT_MONTHS,
    DEFAULT_DAYS,
    DEFAULT_MONTHS,
    parse_event_names,
    parse_window,
)
from app.core.warehouse import Warehouse, get_warehouse
from app.schemas.analytics import (
    ChurnResponse,
    CohortResponse,
    DAUResponse,
    EventsResponse,
    HealthResponse,
    MoMResponse,
)
from app.services.analytics import AnalyticsService

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

_start_time = time.monotonic()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_analytics_service(warehouse: Warehouse = Depends(get_warehouse)) -> AnalyticsService:
    return AnalyticsService(warehouse)


@router.get("/mom", response_model=MoMResponse)
async def get_mom(
        months: Optional[str] = Query(default=None, description="Number of months to analyze (default: 6)"),
        service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Get Month-over-Month growth of monthly active users.

    - **months**: Number of months to analyze
    """
    window = parse_window(months, DEFAULT_MONTHS)
    metrics = await run_in_threadpool(service.calculate_mom_metrics, window)

    return {
        "success": True,
        "data": metrics,
        "metadata": {"months_analyzed": window, "timestamp": _timestamp()}
    }


@router.get("/churn", response_model=ChurnResponse)
async def get_churn(
        months: Optional[str] = Query(default=None, description="Number of months to analyze (default: 6)"),
        service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Get monthly churn rate.

    A user active in a month is churned when they are not active again in
    the following calendar month.
    """
    window = parse_window(months, DEFAULT_MONTHS)
    churn_data = await run_in_threadpool(service.calculate_churn_rate, window)

    return {
        "success": True,
        "data": churn_data,
        "metadata": {"months_analyzed": window, "timestamp": _timestamp()}
    }


@router.get("/events", response_model=EventsResponse)
async def get_events(
        days: Optional[str] = Query(default=None, description="Number of days to analyze (default: 30)"),
        events: Optional[str] = Query(default=None, description="Comma-separated event names to filter"),
        service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Get the top 20 events by count.

    - **days**: Number of days to analyze
    - **events**: Only report these event names
    """
    window = parse_window(days, DEFAULT_DAYS)
    event_names = parse_event_names(events)
    event_data = await run_in_threadpool(service.get_event_metrics, event_names, window)

    return {
        "success": True,
        "data": event_data,
        "metadata": {
            "days_analyzed": window,
            "filtered_events": event_names if event_names else "all",
            "timestamp": _timestamp()
        }
    }


@router.get("/dau", response_model=DAUResponse)
async def get_dau(
        days: Optional[str] = Query(default=None, description="Number of days to analyze (default: 30)"),
        service: AnalyticsService = Depends(get_analytics_service)
):
    """Get Daily Active Users (unique users per day), newest day first"""
    window = parse_window(days, DEFAULT_DAYS)
    dau_data = await run_in_threadpool(service.get_daily_active_users, window)

    return {
        "success": True,
        "data": dau_data,
        "metadata": {"days_analyzed": window, "timestamp": _timestamp()}
    }


@router.get("/cohorts", response_model=CohortResponse)
async def get_cohorts(
        months: Optional[str] = Query(default=None, description="Number of months to analyze (default: 3)"),
        service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Get monthly cohort retention.

    Cohorts are users grouped by the month they were first seen; each row
    reports how many of them were active in a later month.
    """
    window = parse_window(months, DEFAULT_COHORT_MONTHS)
    cohort_data = await run_in_threadpool(service.get_user_cohorts, window)

    return {
        "success": True,
        "data": cohort_data,
        "metadata": {"months_analyzed": window, "timestamp": _timestamp()}
    }


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return {
        "success": True,
        "message": "Analytics API is healthy",
        "timestamp": _timestamp(),
        "uptime": round(time.monotonic() - _start_time, 3)
    }
