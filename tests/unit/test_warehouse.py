from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery
from google.cloud.bigquery.table import Row

from app.core.config import Settings
from app.core.errors import WarehouseError
from app.core.warehouse import BigQueryWarehouse, create_bigquery_client, create_warehouse, normalize_value
from app.services import queries

TABLE = "`proj.ds.events_*`"


def _client_returning(rows):
    client = MagicMock()
    client.query.return_value.result.return_value = rows
    return client


def test_normalize_value():
    assert normalize_value(date(2024, 3, 2)) == "2024-03-02"
    assert normalize_value(Decimal("12.50")) == 12.5
    assert normalize_value(7) == 7
    assert normalize_value(None) is None


def test_execute_binds_parameters_and_returns_dicts():
    rows = [Row((date(2024, 3, 2), 9), {"date": 0, "active_users": 1})]
    client = _client_returning(rows)
    warehouse = BigQueryWarehouse(client, TABLE)

    result = warehouse.execute(queries.event_metrics_query(TABLE, 7, ["login"]))

    assert result == [{"date": "2024-03-02", "active_users": 9}]

    job_config = client.query.call_args.kwargs["job_config"]
    params = {p.name: p for p in job_config.query_parameters}
    assert isinstance(params["days"], bigquery.ScalarQueryParameter)
    assert params["days"].value == 7
    assert isinstance(params["event_names"], bigquery.ArrayQueryParameter)
    assert params["event_names"].values == ["login"]


def test_execute_translates_api_errors():
    client = MagicMock()
    client.query.side_effect = google_exceptions.NotFound("Not found: Table proj:ds.events_20240101")
    warehouse = BigQueryWarehouse(client, TABLE)

    with pytest.raises(WarehouseError) as exc_info:
        warehouse.execute(queries.daily_active_users_query(TABLE, 30))

    assert "Not found: Table" in str(exc_info.value)
    assert exc_info.value.status_code == 404


def test_stack_traces_off_unless_development():
    assert Settings(_env_file=None).is_development is False
    assert Settings(_env_file=None, environment="development").is_development is True


def test_private_key_newlines_are_unescaped():
    settings = Settings(firebase_private_key="-----BEGIN-----\\nabc\\n-----END-----")
    assert settings.firebase_private_key == "-----BEGIN-----\nabc\n-----END-----"


def test_client_requires_credentials():
    settings = Settings(
        bigquery_project_id="proj",
        bigquery_dataset_id="ds",
        firebase_client_email=None,
        firebase_private_key=None,
    )

    with pytest.raises(WarehouseError) as exc_info:
        create_bigquery_client(settings)

    assert "FIREBASE_CLIENT_EMAIL" in str(exc_info.value)


def test_warehouse_requires_dataset():
    settings = Settings(bigquery_project_id="proj", bigquery_dataset_id=None)

    with pytest.raises(WarehouseError):
        create_warehouse(settings)
