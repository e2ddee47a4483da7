from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Any, Optional, Sequence
from app.core.warehouse import Warehouse
from app.services import queries
from app.services.queries import WarehouseQuery
import structlog

logger = structlog.get_logger()

TWO_PLACES = Decimal("0.01")


def percentage(part: Optional[float], whole: Optional[float]) -> Optional[float]:
    """part / whole * 100 rounded half-up to 2 places, None when whole is 0"""
    if part is None or not whole:
        return None
    value = Decimal(str(part)) * 100 / Decimal(str(whole))
    return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def format_growth(current: float, previous: Optional[float]) -> Optional[str]:
    """
    Growth from previous to current as a fixed two-decimal string.

    Rounds half away from zero on the exact float value, so "12.50" and not
    "12.5". Returns None when there is no previous value to compare with.
    """
    if previous is None or previous == 0:
        return None
    growth = ((current - previous) / previous) * 100
    return str(Decimal(growth).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def months_between(start: str, end: str) -> int:
    """Calendar months from ``start`` to ``end`` (both YYYY-MM)"""
    start_year, start_month = (int(part) for part in start.split("-")[:2])
    end_year, end_month = (int(part) for part in end.split("-")[:2])
    return (end_year - start_year) * 12 + (end_month - start_month)


def is_churned(month: str, next_month: Optional[str]) -> bool:
    """A user churns in ``month`` unless they come back the very next month"""
    if next_month is None:
        return True
    return months_between(month, next_month) > 1


def derive_mom_growth(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach previous-month users and growth; rows must be newest first"""
    metrics = []

    for index, current in enumerate(rows):
        previous = rows[index + 1] if index + 1 < len(rows) else None
        previous_users = previous["active_users"] if previous is not None else None

        metrics.append({
            "month": current["month"],
            "active_users": current["active_users"],
            "previous_month_users": previous_users,
            "growth_percentage": format_growth(current["active_users"], previous_users)
        })

    return metrics


def derive_churn(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fold (month, next_month, users) groups into per-month churn"""
    totals: Dict[str, Dict[str, int]] = {}

    for row in rows:
        month = row["month"]
        users = row["users"]
        bucket = totals.setdefault(month, {"active_users": 0, "churned_users": 0})
        bucket["active_users"] += users
        if is_churned(month, row.get("next_month")):
            bucket["churned_users"] += users

    return [
        {
            "month": month,
            "active_users": totals[month]["active_users"],
            "churned_users": totals[month]["churned_users"],
            "churn_rate": percentage(totals[month]["churned_users"], totals[month]["active_users"])
        }
        for month in sorted(totals, reverse=True)
    ]


def derive_retention(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "cohort_month": row["cohort_month"],
            "cohort_size": row["cohort_size"],
            "activity_month": row["activity_month"],
            "active_users": row["active_users"],
            "retention_rate": percentage(row["active_users"], row["cohort_size"])
        }
        for row in rows
    ]


class AnalyticsService:
    """Service for analytics queries against the event warehouse"""

    def __init__(self, warehouse: Warehouse):
        self.warehouse = warehouse

    def _execute(self, query: WarehouseQuery, **context) -> List[Dict[str, Any]]:
        """Run a single query; failures are logged and re-raised unchanged"""
        try:
            rows = self.warehouse.execute(query)
        except Exception as e:
            logger.error(f"{query.name}_query_failed", error=str(e), **context)
            raise

        logger.info(f"{query.name}_query_executed", rows=len(rows), **context)
        return rows

    @staticmethod
    def _empty_window(window: int, unit: str) -> bool:
        # A negative window ends before it starts; nothing to scan
        if window < 0:
            logger.warning("empty_window_requested", window=window, unit=unit)
            return True
        return False

    def get_monthly_active_users(self, months: int = 6) -> List[Dict[str, Any]]:
        """Get Monthly Active Users (MAU), newest month first"""
        if self._empty_window(months, "months"):
            return []

        query = queries.monthly_active_users_query(self.warehouse.table, months)
        rows = self._execute(query, months=months)
        return [
            {"month": row["month"], "active_users": row["active_users"]}
            for row in rows
        ]

    def calculate_mom_metrics(self, months: int = 6) -> List[Dict[str, Any]]:
        """Calculate Month-over-Month growth metrics"""
        return derive_mom_growth(self.get_monthly_active_users(months))

    def calculate_churn_rate(self, months: int = 6) -> List[Dict[str, Any]]:
        """Calculate churn rate for each month in the window"""
        if self._empty_window(months, "months"):
            return []

        rows = self._execute(queries.churn_query(self.warehouse.table, months), months=months)
        return derive_churn(rows)

    def get_event_metrics(
            self,
            event_names: Sequence[str] = (),
            days: int = 30
    ) -> List[Dict[str, Any]]:
        """Get counts for the top events, optionally filtered by name"""
        if self._empty_window(days, "days"):
            return []

        query = queries.event_metrics_query(self.warehouse.table, days, event_names)
        rows = self._execute(query, days=days, events=list(event_names))
        return [
            {
                "event_name": row["event_name"],
                "event_count": row["event_count"],
                "unique_users": row["unique_users"]
            }
            for row in rows
        ]

    def get_daily_active_users(self, days: int = 30) -> List[Dict[str, Any]]:
        """Get Daily Active Users (DAU), newest day first"""
        if self._empty_window(days, "days"):
            return []

        query = queries.daily_active_users_query(self.warehouse.table, days)
        rows = self._execute(query, days=days)
        return [
            {"date": str(row["date"]), "active_users": row["active_users"]}
            for row in rows
        ]

    def get_user_cohorts(self, months: int = 3) -> List[Dict[str, Any]]:
        """Get monthly cohort retention"""
        if self._empty_window(months, "months"):
            return []

        rows = self._execute(queries.cohort_query(self.warehouse.table, months), months=months)
        return derive_retention(rows)
