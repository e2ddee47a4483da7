"""
SQL templates for the analytics metrics.

Every query addresses the date-sharded ``events_*`` table and bounds the
scanned shards with ``_TABLE_SUFFIX``. User-supplied values are bound as
named query parameters; only the configured table reference is embedded in
the SQL text, and it is validated first.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Sequence, Tuple

EVENT_METRICS_LIMIT = 20
COHORT_LOOKBACK_MONTHS = 12

_IDENTIFIER = re.compile(r"^[A-Za-z0-9_\-.:]+$")


@dataclass(frozen=True)
class QueryParameter:
    """A named parameter bound to a query (``@name`` in the SQL)"""
    name: str
    type: str
    value: Any
    array: bool = False


@dataclass(frozen=True)
class WarehouseQuery:
    """SQL text plus the parameters it references"""
    name: str
    sql: str
    parameters: Tuple[QueryParameter, ...] = field(default_factory=tuple)

    def parameter(self, name: str) -> QueryParameter:
        for param in self.parameters:
            if param.name == name:
                return param
        raise KeyError(name)


def events_table(project_id: str, dataset_id: str, prefix: str = "events_") -> str:
    """Backtick-quoted wildcard reference to the sharded events table"""
    for label, value in (("project", project_id), ("dataset", dataset_id), ("prefix", prefix)):
        if not value or not _IDENTIFIER.match(value):
            raise ValueError(f"Invalid BigQuery {label} identifier: {value!r}")
    return f"`{project_id}.{dataset_id}.{prefix}*`"


def _shard_window(unit: str, param: str) -> str:
    return (
        f"_TABLE_SUFFIX BETWEEN FORMAT_DATE('%Y%m%d', DATE_SUB(CURRENT_DATE(), INTERVAL @{param} {unit}))\n"
        f"      AND FORMAT_DATE('%Y%m%d', CURRENT_DATE())"
    )


def monthly_active_users_query(table: str, months: int) -> WarehouseQuery:
    """Distinct users per calendar month, newest month first"""
    sql = f"""
    SELECT
      FORMAT_DATE('%Y-%m', PARSE_DATE('%Y%m%d', event_date)) AS month,
      COUNT(DISTINCT user_pseudo_id) AS active_users
    FROM
      {table}
    WHERE
      {_shard_window("MONTH", "months")}
    GROUP BY
      month
    ORDER BY
      month DESC
    """
    return WarehouseQuery(
        name="monthly_active_users",
        sql=sql,
        parameters=(QueryParameter("months", "INT64", months),),
    )


def churn_query(table: str, months: int) -> WarehouseQuery:
    """
    Per-month user counts grouped by each user's next active month.

    The shard scan covers one month more than the reported window, the
    same range the churn report has always scanned. Users are counted once per
    (month, next_month) pair, so summing a month's groups gives its
    distinct active users.
    """
    sql = f"""
    WITH monthly_users AS (
      SELECT
        FORMAT_DATE('%Y-%m', PARSE_DATE('%Y%m%d', event_date)) AS month,
        user_pseudo_id
      FROM
        {table}
      WHERE
        {_shard_window("MONTH", "scan_months")}
      GROUP BY
        month, user_pseudo_id
    ),
    user_activity AS (
      SELECT
        month,
        user_pseudo_id,
        LEAD(month) OVER (PARTITION BY user_pseudo_id ORDER BY month) AS next_month
      FROM
        monthly_users
    )
    SELECT
      month,
      next_month,
      COUNT(DISTINCT user_pseudo_id) AS users
    FROM
      user_activity
    WHERE
      month >= FORMAT_DATE('%Y-%m', DATE_SUB(CURRENT_DATE(), INTERVAL @months MONTH))
    GROUP BY
      month, next_month
    ORDER BY
      month DESC, next_month ASC
    """
    return WarehouseQuery(
        name="churn",
        sql=sql,
        parameters=(
            QueryParameter("months", "INT64", months),
            QueryParameter("scan_months", "INT64", months + 1),
        ),
    )


def event_metrics_query(table: str, days: int, event_names: Sequence[str] = ()) -> WarehouseQuery:
    """Top events by count, optionally restricted to ``event_names``"""
    parameters = [QueryParameter("days", "INT64", days)]
    event_filter = ""
    if event_names:
        event_filter = "AND event_name IN UNNEST(@event_names)"
        parameters.append(QueryParameter("event_names", "STRING", list(event_names), array=True))

    sql = f"""
    SELECT
      event_name,
      COUNT(*) AS event_count,
      COUNT(DISTINCT user_pseudo_id) AS unique_users
    FROM
      {table}
    WHERE
      {_shard_window("DAY", "days")}
      {event_filter}
    GROUP BY
      event_name
    ORDER BY
      event_count DESC
    LIMIT {EVENT_METRICS_LIMIT}
    """
    return WarehouseQuery(name="event_metrics", sql=sql, parameters=tuple(parameters))


def daily_active_users_query(table: str, days: int) -> WarehouseQuery:
    """Distinct users per day, newest day first"""
    sql = f"""
    SELECT
      PARSE_DATE('%Y%m%d', event_date) AS date,
      COUNT(DISTINCT user_pseudo_id) AS active_users
    FROM
      {table}
    WHERE
      {_shard_window("DAY", "days")}
    GROUP BY
      date
    ORDER BY
      date DESC
    """
    return WarehouseQuery(
        name="daily_active_users",
        sql=sql,
        parameters=(QueryParameter("days", "INT64", days),),
    )


def cohort_query(table: str, months: int) -> WarehouseQuery:
    """
    Monthly cohorts by first-seen date and their activity per month.

    First-seen dates come from a fixed twelve month lookback; only cohorts
    first seen within the last ``months`` months are kept.
    """
    sql = f"""
    WITH first_activity AS (
      SELECT
        user_pseudo_id,
        MIN(PARSE_DATE('%Y%m%d', event_date)) AS first_seen_date
      FROM
        {table}
      WHERE
        {_shard_window("MONTH", "lookback_months")}
      GROUP BY
        user_pseudo_id
    ),
    monthly_cohorts AS (
      SELECT
        FORMAT_DATE('%Y-%m', first_seen_date) AS cohort_month,
        COUNT(DISTINCT user_pseudo_id) AS cohort_size
      FROM
        first_activity
      WHERE
        first_seen_date >= DATE_SUB(CURRENT_DATE(), INTERVAL @months MONTH)
      GROUP BY
        cohort_month
    ),
    active_users_per_month AS (
      SELECT
        FORMAT_DATE('%Y-%m', fa.first_seen_date) AS cohort_month,
        FORMAT_DATE('%Y-%m', PARSE_DATE('%Y%m%d', e.event_date)) AS activity_month,
        COUNT(DISTINCT e.user_pseudo_id) AS active_users
      FROM
        {table} e
      JOIN
        first_activity fa ON e.user_pseudo_id = fa.user_pseudo_id
      WHERE
        {_shard_window("MONTH", "lookback_months")}
        AND fa.first_seen_date >= DATE_SUB(CURRENT_DATE(), INTERVAL @months MONTH)
      GROUP BY
        cohort_month, activity_month
    )
    SELECT
      mc.cohort_month,
      mc.cohort_size,
      apm.activity_month,
      apm.active_users
    FROM
      monthly_cohorts mc
    JOIN
      active_users_per_month apm ON mc.cohort_month = apm.cohort_month
    ORDER BY
      mc.cohort_month DESC, apm.activity_month ASC
    """
    return WarehouseQuery(
        name="cohorts",
        sql=sql,
        parameters=(
            QueryParameter("months", "INT64", months),
            QueryParameter("lookback_months", "INT64", COHORT_LOOKBACK_MONTHS),
        ),
    )
