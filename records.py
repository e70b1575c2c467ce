"""CSV boundary: parse the input table into events and write result tables."""

import csv
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Union
from pydantic import ValidationError
import structlog

from models import Account, Event, EventKind

logger = structlog.get_logger()

INPUT_HEADER = ["type", "client", "tx", "amount"]
OUTPUT_HEADER = ["client_id", "available", "held", "total", "locked"]


class InputError(Exception):
    """The input table could not be opened or has a malformed header."""

    def __init__(self, path: Union[str, Path], detail: str):
        self.path = str(path)
        self.detail = detail
        super().__init__(f"Could not read transactions from file `{self.path}`: {detail}")


def parse_row(row: List[str], sequence_index: int) -> Optional[Event]:
    """Turn one data row into an event, or None when the row is malformed."""
    if len(row) != len(INPUT_HEADER):
        return None

    kind, client, tx, amount = (field.strip() for field in row)
    try:
        return Event(
            kind=EventKind(kind.lower()),
            client_id=int(client),
            tx_id=int(tx),
            amount=Decimal(amount) if amount else None,
            sequence_index=sequence_index
        )
    except (ValueError, InvalidOperation, ValidationError):
        return None


def _check_header(path: Union[str, Path], header: Optional[List[str]]) -> None:
    if header is None:
        raise InputError(path, "missing header")
    names = [name.strip().lower() for name in header]
    if names != INPUT_HEADER:
        raise InputError(path, f"malformed header {header!r}, expected {','.join(INPUT_HEADER)}")


def iter_events(stream: IO[str], path: Union[str, Path] = "<stream>") -> Iterator[Event]:
    """Yield events from an open input table, dropping malformed rows."""
    reader = csv.reader(stream)
    _check_header(path, next(reader, None))

    dropped = 0
    for sequence_index, row in enumerate(reader):
        if not row:
            continue
        event = parse_row(row, sequence_index)
        if event is None:
            dropped += 1
            logger.debug("Dropping malformed row", row=row, sequence_index=sequence_index)
            continue
        yield event

    if dropped:
        logger.info("Malformed rows dropped", path=str(path), dropped=dropped)


def read_events(path: Union[str, Path]) -> List[Event]:
    """Read every event from the table at `path`."""
    try:
        stream = open(path, newline="", encoding="utf-8", errors="replace")
    except OSError as e:
        raise InputError(path, e.strerror or str(e)) from e

    with stream:
        try:
            return list(iter_events(stream, path))
        except csv.Error as e:
            raise InputError(path, str(e)) from e


def write_accounts(accounts: Iterable[Account], stream: IO[str]) -> None:
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_HEADER, lineterminator="\n")
    writer.writeheader()
    for account in accounts:
        writer.writerow(account.to_row())


def write_events(events: Iterable[Event], stream: IO[str]) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(INPUT_HEADER)
    for event in events:
        writer.writerow([
            event.kind.value,
            event.client_id,
            event.tx_id,
            "" if event.amount is None else str(event.amount),
        ])
