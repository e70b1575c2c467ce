from typing import Dict, Iterable, List
import structlog

from models import Event

logger = structlog.get_logger()


def partition(events: Iterable[Event]) -> Dict[int, List[Event]]:
    """Group events by client id.

    Clients appear in order of their first event. Within a client the events
    keep their relative order, which must also be ascending `sequence_index`;
    a scrambled client stream is re-sorted before any ledger sees it.
    """
    partitions: Dict[int, List[Event]] = {}
    out_of_order = set()

    for event in events:
        client_events = partitions.setdefault(event.client_id, [])
        if client_events and client_events[-1].sequence_index > event.sequence_index:
            out_of_order.add(event.client_id)
        client_events.append(event)

    for client_id in out_of_order:
        logger.warning(
            "Restoring arrival order for client stream",
            client_id=client_id,
            events=len(partitions[client_id])
        )
        partitions[client_id].sort(key=lambda e: e.sequence_index)

    return partitions
