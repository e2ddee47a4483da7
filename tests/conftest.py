import pytest


class StubWarehouse:
    """In-memory warehouse that records the queries it receives"""

    table = "`test-project.analytics_123.events_*`"

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.queries = []

    def execute(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.rows)


@pytest.fixture
def stub_warehouse():
    return StubWarehouse()
