# Warehouse client

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Protocol

from fastapi import Request
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import bigquery
from google.oauth2 import service_account
import structlog

from app.core.config import Settings
from app.core.errors import WarehouseError
from app.services.queries import QueryParameter, WarehouseQuery, events_table

logger = structlog.get_logger()

BIGQUERY_SCOPES = ["https://www.googleapis.com/auth/bigquery"]


class Warehouse(Protocol):
    """Anything that can run a WarehouseQuery and return rows as dicts"""

    table: str

    def execute(self, query: WarehouseQuery) -> List[Dict[str, Any]]:
        ...


def normalize_value(value: Any) -> Any:
    """Convert warehouse-native scalars to JSON-friendly ones"""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _to_bigquery_parameter(param: QueryParameter):
    if param.array:
        return bigquery.ArrayQueryParameter(param.name, param.type, list(param.value))
    return bigquery.ScalarQueryParameter(param.name, param.type, param.value)


class BigQueryWarehouse:
    """Runs parameterized queries through a BigQuery client"""

    def __init__(self, client: bigquery.Client, table: str):
        self.client = client
        self.table = table

    def execute(self, query: WarehouseQuery) -> List[Dict[str, Any]]:
        job_config = bigquery.QueryJobConfig(
            query_parameters=[_to_bigquery_parameter(p) for p in query.parameters]
        )

        try:
            rows = self.client.query(query.sql, job_config=job_config).result()
            result = [
                {key: normalize_value(value) for key, value in row.items()}
                for row in rows
            ]
        except google_exceptions.GoogleAPICallError as e:
            raise WarehouseError(str(e.message or e), status_code=e.code) from e
        except auth_exceptions.GoogleAuthError as e:
            raise WarehouseError(f"Warehouse credential error: {e}") from e

        return result


def create_bigquery_client(settings: Settings) -> bigquery.Client:
    """Build a BigQuery client bound to the configured service account"""
    missing = [
        name for name, value in (
            ("BIGQUERY_PROJECT_ID", settings.bigquery_project_id),
            ("FIREBASE_CLIENT_EMAIL", settings.firebase_client_email),
            ("FIREBASE_PRIVATE_KEY", settings.firebase_private_key),
        )
        if not value
    ]
    if missing:
        raise WarehouseError(f"Missing warehouse credential settings: {', '.join(missing)}")

    try:
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "project_id": settings.bigquery_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=BIGQUERY_SCOPES,
        )
    except ValueError as e:
        raise WarehouseError(f"Invalid service account credential: {e}") from e

    return bigquery.Client(project=settings.bigquery_project_id, credentials=credentials)


def create_warehouse(settings: Settings) -> BigQueryWarehouse:
    """Build the warehouse used by the analytics routes"""
    if not settings.bigquery_dataset_id:
        raise WarehouseError("Missing warehouse setting: BIGQUERY_DATASET_ID")

    client = create_bigquery_client(settings)
    try:
        table = events_table(
            settings.bigquery_project_id,
            settings.bigquery_dataset_id,
            settings.events_table_prefix,
        )
    except ValueError as e:
        raise WarehouseError(str(e)) from e

    logger.info(
        "warehouse_initialized",
        project=settings.bigquery_project_id,
        dataset=settings.bigquery_dataset_id,
    )
    return BigQueryWarehouse(client, table)


def get_warehouse(request: Request) -> Warehouse:
    """Dependency for getting the warehouse created at startup"""
    warehouse = getattr(request.app.state, "warehouse", None)
    if warehouse is None:
        error = getattr(request.app.state, "warehouse_error", None)
        raise WarehouseError(f"Warehouse credential error: {error or 'client not initialized'}")
    return warehouse
