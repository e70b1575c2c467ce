from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Optional
import structlog

from config import Settings, get_settings
from models import Account, Event, EventKind, quantize
from repositories import TransactionLogRepository, InMemoryTransactionLogRepository

# Configure structured logging
logger = structlog.get_logger()


class RejectionReason(str, Enum):
    locked_account = "locked_account"
    non_positive_amount = "non_positive_amount"
    insufficient_funds = "insufficient_funds"
    unknown_reference = "unknown_reference"
    already_disputed = "already_disputed"
    not_disputed = "not_disputed"
    charged_back = "charged_back"
    already_resolved = "already_resolved"
    amount_out_of_range = "amount_out_of_range"
    client_mismatch = "client_mismatch"


class TransactionRejected(Exception):
    """An event that cannot be applied to the account in its current state."""

    def __init__(self, reason: RejectionReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class LedgerService:
    """Folds one client's ordered events into a final account.

    The service exclusively owns the account and its accepted-transaction log
    while the client's events are being applied. Rejected events never touch
    either of them.
    """

    def __init__(
        self,
        client_id: int,
        settings: Optional[Settings] = None,
        transaction_log: Optional[TransactionLogRepository] = None
    ):
        self.settings = settings or get_settings()
        self.account = Account.new(client_id)
        self.transaction_log = transaction_log or InMemoryTransactionLogRepository()
        self.accepted_count = 0
        self.rejected_count = 0

    @property
    def client_id(self) -> int:
        return self.account.client_id

    def fold(self, events: Iterable[Event]) -> Account:
        """Apply every event in order and return the final account."""
        for event in events:
            self.apply(event)

        logger.debug(
            "Ledger folded",
            client_id=self.client_id,
            accepted=self.accepted_count,
            rejected=self.rejected_count,
            available=str(self.account.available),
            held=str(self.account.held),
            total=str(self.account.total),
            locked=self.account.locked
        )
        return self.account

    def apply(self, event: Event) -> bool:
        """Apply a single event. Returns False when the event was rejected."""
        try:
            self._dispatch(event)
        except TransactionRejected as e:
            self.rejected_count += 1
            if self.settings.enable_detailed_logging:
                logger.debug(
                    "Ignoring invalid transaction",
                    client_id=event.client_id,
                    tx_id=event.tx_id,
                    type=event.kind.value,
                    sequence_index=event.sequence_index,
                    reason=e.reason.value,
                    detail=e.detail
                )
            return False

        if not self.account.is_balanced():
            raise ValueError(f"Account {self.client_id} unbalanced after {event}")

        self.transaction_log.record(event)
        self.accepted_count += 1
        return True

    def _dispatch(self, event: Event) -> None:
        if event.client_id != self.client_id:
            raise TransactionRejected(
                RejectionReason.client_mismatch,
                f"event for client {event.client_id} sent to ledger {self.client_id}"
            )

        if event.kind == EventKind.deposit:
            self._process_deposit(event)
        elif event.kind == EventKind.withdrawal:
            self._process_withdrawal(event)
        elif event.kind == EventKind.dispute:
            self._process_dispute(event)
        elif event.kind == EventKind.resolve:
            self._process_resolve(event)
        elif event.kind == EventKind.chargeback:
            self._process_chargeback(event)
        else:
            raise ValueError(f"Unhandled event kind {event.kind!r}")

    def _round(self, amount: Decimal) -> Decimal:
        try:
            return quantize(amount, self.settings.decimal_places)
        except InvalidOperation:
            raise TransactionRejected(
                RejectionReason.amount_out_of_range,
                f"amount {amount}"
            )

    def _require_unlocked(self) -> None:
        if self.account.locked:
            raise TransactionRejected(RejectionReason.locked_account)

    def _require_positive(self, event: Event) -> Decimal:
        amount = self._round(event.amount)
        if amount <= 0:
            raise TransactionRejected(
                RejectionReason.non_positive_amount,
                f"amount {event.amount}"
            )
        return amount

    def _process_deposit(self, event: Event) -> None:
        """Credit available and total funds."""
        self._require_unlocked()
        amount = self._require_positive(event)

        self.account.available += amount
        self.account.total += amount

    def _process_withdrawal(self, event: Event) -> None:
        """Debit available and total funds, never below zero."""
        self._require_unlocked()
        amount = self._require_positive(event)

        if self.account.available < amount:
            raise TransactionRejected(
                RejectionReason.insufficient_funds,
                f"available {self.account.available}, requested {amount}"
            )

        self.account.available -= amount
        self.account.total -= amount

    def _disputed_transaction(self, event: Event, expect_dispute: bool) -> Event:
        """Look up the deposit or withdrawal a dispute-family event refers to."""
        if self.account.locked and not self.settings.allow_disputes_on_locked:
            raise TransactionRejected(RejectionReason.locked_account)

        initial = self.transaction_log.initial_transaction(event.tx_id)
        if initial is None:
            raise TransactionRejected(
                RejectionReason.unknown_reference,
                f"no accepted transaction {event.tx_id}"
            )

        if self.transaction_log.is_charged_back(event.tx_id):
            raise TransactionRejected(RejectionReason.charged_back)

        under_dispute = self.transaction_log.is_under_dispute(event.tx_id)
        if expect_dispute and not under_dispute:
            raise TransactionRejected(RejectionReason.not_disputed)
        if not expect_dispute and under_dispute:
            raise TransactionRejected(RejectionReason.already_disputed)

        # A credited withdrawal has already been paid back to the client.
        if (
            not expect_dispute
            and initial.kind == EventKind.withdrawal
            and self.settings.withdrawal_resolve == "credit"
            and self.transaction_log.is_resolved(event.tx_id)
        ):
            raise TransactionRejected(RejectionReason.already_resolved)

        return initial

    def _process_dispute(self, event: Event) -> None:
        initial = self._disputed_transaction(event, expect_dispute=False)
        amount = self._round(initial.amount)

        if initial.kind == EventKind.deposit:
            self.account.available -= amount
            self.account.held += amount
        else:
            # The withdrawn funds come back provisionally as held.
            self.account.held += amount
            self.account.total += amount

    def _process_resolve(self, event: Event) -> None:
        initial = self._disputed_transaction(event, expect_dispute=True)
        amount = self._round(initial.amount)

        if initial.kind == EventKind.deposit:
            self.account.available += amount
            self.account.held -= amount
        elif self.settings.withdrawal_resolve == "credit":
            self.account.available += amount
            self.account.held -= amount
        else:
            self.account.held -= amount
            self.account.total -= amount

    def _process_chargeback(self, event: Event) -> None:
        initial = self._disputed_transaction(event, expect_dispute=True)
        amount = self._round(initial.amount)

        if initial.kind == EventKind.deposit:
            self.account.held -= amount
            self.account.total -= amount
        else:
            self.account.available += amount
            self.account.held -= amount
        self.account.locked = True

        logger.info(
            "Account locked by chargeback",
            client_id=self.client_id,
            tx_id=event.tx_id,
            amount=str(amount)
        )


# Factory function for dependency injection
def get_ledger_service(
    client_id: int,
    settings: Optional[Settings] = None
) -> LedgerService:
    return LedgerService(client_id, settings=settings)
