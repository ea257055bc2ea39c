import pytest

from labelsense.infrastructure.observability.metrics import get_registry


@pytest.fixture(autouse=True)
def reset_metrics():
    get_registry().reset()
    yield
    get_registry().reset()
