import pytest
from app.core.errors import WarehouseError, classify_error, error_response_body


@pytest.mark.parametrize("message,expected", [
    ("404 Not found: Table proj:ds.events_20240101 was not found in location US", 404),
    ("Permission denied while getting Drive credentials", 403),
    ("403 Access Denied: Project proj: User does not have bigquery.jobs.create permission", 403),
    ("Warehouse credential error: invalid_grant", 401),
    ("Firebase app failed to initialize", 401),
    ("Syntax error: Unexpected keyword", 500),
])
def test_classify_by_message(message, expected):
    status_code, _ = classify_error(WarehouseError(message))
    assert status_code == expected


def test_unclassified_error_keeps_explicit_status():
    status_code, public_message = classify_error(WarehouseError("Quota exceeded", status_code=429))

    assert status_code == 429
    assert public_message is None


def test_classified_body_has_details():
    status_code, body = error_response_body(WarehouseError("Not found: Table x"))

    assert status_code == 404
    assert body["success"] is False
    assert "export" in body["error"]
    assert body["details"] == "Not found: Table x"
    assert "stack" not in body


def test_stack_only_when_requested():
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        exc = e

    _, body = error_response_body(exc, include_stack=False)
    assert body == {"success": False, "error": "boom"}

    _, body = error_response_body(exc, include_stack=True)
    assert "RuntimeError: boom" in body["stack"]
