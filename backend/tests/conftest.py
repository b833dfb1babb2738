from typing import Iterator

import pytest
from slotkeeper.config import get_settings


@pytest.fixture(autouse=True)
def _utc_wall_clock(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    # Local-day arithmetic in tests is written against UTC.
    monkeypatch.setenv("LOCAL_TIMEZONE", "UTC")
    monkeypatch.setenv("AUTH_SECRET", "test-secret-with-at-least-32-bytes!!")
    monkeypatch.setenv("PAYMENT_SECRET", "test-payment-secret-at-least-32-bytes")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
