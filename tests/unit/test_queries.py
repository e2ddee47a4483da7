import pytest
from app.services import queries

TABLE = "`proj.analytics_1.events_*`"


def test_events_table_reference():
    assert queries.events_table("proj", "analytics_1") == TABLE
    assert queries.events_table("my-proj", "ds", "intraday_") == "`my-proj.ds.intraday_*`"


@pytest.mark.parametrize("project,dataset", [
    ("proj`; DROP TABLE x", "ds"),
    ("proj", "ds name"),
    ("", "ds"),
])
def test_events_table_rejects_bad_identifiers(project, dataset):
    with pytest.raises(ValueError):
        queries.events_table(project, dataset)


def test_monthly_active_users_query():
    query = queries.monthly_active_users_query(TABLE, 6)

    assert TABLE in query.sql
    assert "INTERVAL @months MONTH" in query.sql
    assert "_TABLE_SUFFIX BETWEEN" in query.sql
    assert "ORDER BY\n      month DESC" in query.sql
    assert query.parameter("months").value == 6
    assert query.parameter("months").type == "INT64"


def test_daily_active_users_query_uses_day_window():
    query = queries.daily_active_users_query(TABLE, 30)

    assert "INTERVAL @days DAY" in query.sql
    assert "date DESC" in query.sql
    assert query.parameter("days").value == 30


def test_event_metrics_query_without_filter():
    query = queries.event_metrics_query(TABLE, 30)

    assert "@event_names" not in query.sql
    assert "LIMIT 20" in query.sql
    assert "event_count DESC" in query.sql
    assert [p.name for p in query.parameters] == ["days"]


def test_event_metrics_query_binds_filter_as_array():
    names = ["purchase", "o'brien"]
    query = queries.event_metrics_query(TABLE, 7, names)

    assert "event_name IN UNNEST(@event_names)" in query.sql
    # names never end up in the SQL text
    assert "o'brien" not in query.sql
    assert "purchase" not in query.sql

    param = query.parameter("event_names")
    assert param.array is True
    assert param.type == "STRING"
    assert param.value == names


def test_churn_query_scans_one_extra_month():
    query = queries.churn_query(TABLE, 6)

    assert query.parameter("months").value == 6
    assert query.parameter("scan_months").value == 7
    assert "LEAD(month) OVER (PARTITION BY user_pseudo_id ORDER BY month)" in query.sql
    assert "INTERVAL @scan_months MONTH" in query.sql


def test_cohort_query_uses_fixed_lookback():
    query = queries.cohort_query(TABLE, 3)

    assert query.parameter("lookback_months").value == 12
    assert query.parameter("months").value == 3
    assert "mc.cohort_month DESC, apm.activity_month ASC" in query.sql
    assert "retention_rate" not in query.sql


@pytest.mark.parametrize("window", [0, -1, -12])
def test_builders_accept_non_positive_windows(window):
    assert queries.monthly_active_users_query(TABLE, window).parameter("months").value == window
    assert queries.daily_active_users_query(TABLE, window).parameter("days").value == window
    assert queries.churn_query(TABLE, window).parameter("scan_months").value == window + 1
    assert queries.cohort_query(TABLE, window).parameter("months").value == window
    assert queries.event_metrics_query(TABLE, window).parameter("days").value == window


def test_missing_parameter_lookup():
    query = queries.daily_active_users_query(TABLE, 30)
    with pytest.raises(KeyError):
        query.parameter("months")
