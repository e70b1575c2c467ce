import pytest
from decimal import Decimal

from config import TestingSettings
from models import Event, EventKind


@pytest.fixture
def settings():
    """Settings profile used by the test-suite."""
    return TestingSettings()


@pytest.fixture
def make_events():
    """Build events from (type, client, tx, amount) tuples, numbered in order."""
    def build(*rows):
        return [
            Event(
                kind=EventKind(kind),
                client_id=client_id,
                tx_id=tx_id,
                amount=None if amount is None else Decimal(amount),
                sequence_index=index
            )
            for index, (kind, client_id, tx_id, amount) in enumerate(rows)
        ]
    return build
