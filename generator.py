"""Synthetic event streams for load testing."""

import random
from decimal import Decimal
from typing import List, Optional

from models import Event, EventKind

MAX_TX_ID = 4294967295
MAX_RAW_AMOUNT = 2 ** 63 - 1

_REFERENCE_KINDS = (EventKind.dispute, EventKind.resolve, EventKind.chargeback)


def _random_amount(rng: random.Random) -> Decimal:
    # Raw integer scaled to four fractional digits.
    return Decimal(rng.randint(0, MAX_RAW_AMOUNT)).scaleb(-4)


def _random_transfer(rng: random.Random, num_clients: int, sequence_index: int) -> Event:
    return Event(
        kind=rng.choice((EventKind.deposit, EventKind.withdrawal)),
        client_id=rng.randint(1, num_clients),
        tx_id=rng.randint(0, MAX_TX_ID),
        amount=_random_amount(rng),
        sequence_index=sequence_index
    )


def generate_events(
    num_txns: int,
    num_clients: int,
    rng: Optional[random.Random] = None
) -> List[Event]:
    """Build `num_txns` random events spread over clients 1..num_clients.

    The first event is always a deposit or withdrawal. Every later event is
    either a fresh deposit/withdrawal or a dispute, resolve or chargeback that
    points at a randomly chosen earlier event.
    """
    if num_clients < 1 or num_clients > 65535:
        raise ValueError("num_clients must be between 1 and 65535")
    if num_txns < 0:
        raise ValueError("num_txns cannot be negative")

    rng = rng or random.Random()
    events: List[Event] = []

    for sequence_index in range(num_txns):
        choice = rng.randint(0, 4)
        if not events or choice < 2:
            events.append(_random_transfer(rng, num_clients, sequence_index))
            continue

        referenced = rng.choice(events)
        events.append(Event(
            kind=_REFERENCE_KINDS[choice - 2],
            client_id=referenced.client_id,
            tx_id=referenced.tx_id,
            sequence_index=sequence_index
        ))

    return events
