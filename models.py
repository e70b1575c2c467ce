from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from typing import Dict, Optional
from decimal import Decimal, ROUND_HALF_EVEN


DEFAULT_DECIMAL_PLACES = 4
# Leaves room in the 28-digit decimal context for four places and running totals
MAX_AMOUNT = Decimal("1e15")


def quantize(amount: Decimal, places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    """Round an amount to the ledger's fixed precision."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


class EventKind(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (EventKind.deposit, EventKind.withdrawal)


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(..., description="Event type")
    client_id: int = Field(..., ge=0, le=65535, description="Client identifier (u16)")
    tx_id: int = Field(..., ge=0, le=4294967295, description="Transaction identifier (u32)")
    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount for deposits and withdrawals, absent otherwise"
    )
    sequence_index: int = Field(..., ge=0, description="Original arrival order")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is None:
            return v
        if not v.is_finite():
            raise ValueError('Amount must be a finite decimal')
        if v < 0:
            raise ValueError('Amount cannot be negative')
        if v >= MAX_AMOUNT:
            raise ValueError(f'Amount must be below {MAX_AMOUNT}')
        return v

    @model_validator(mode='after')
    def validate_amount_kind_consistency(self):
        if self.kind.carries_amount and self.amount is None:
            raise ValueError(f'{self.kind.value} events must carry an amount')
        if not self.kind.carries_amount and self.amount is not None:
            raise ValueError(f'{self.kind.value} events must not carry an amount')
        return self

    def __str__(self) -> str:
        return (
            f"{self.kind.value} client={self.client_id} tx={self.tx_id} "
            f"amount={self.amount} seq={self.sequence_index}"
        )


class Account(BaseModel):
    client_id: int = Field(..., ge=0, le=65535, description="Client identifier")
    available: Decimal = Field(default=Decimal("0"), description="Funds available for withdrawal")
    held: Decimal = Field(default=Decimal("0"), description="Funds held by open disputes")
    total: Decimal = Field(default=Decimal("0"), description="available + held")
    locked: bool = Field(default=False, description="Frozen after a chargeback")

    @classmethod
    def new(cls, client_id: int) -> "Account":
        return cls(client_id=client_id)

    def is_balanced(self) -> bool:
        return self.total == self.available + self.held

    def to_row(self) -> Dict[str, str]:
        return {
            "client_id": str(self.client_id),
            "available": str(self.available),
            "held": str(self.held),
            "total": str(self.total),
            "locked": "true" if self.locked else "false",
        }


class RunSummary(BaseModel):
    accounts_count: int = Field(..., description="Number of accounts produced")
    events_processed: int = Field(..., description="Events handed to the ledgers")
    events_rejected: int = Field(..., description="Events the ledgers ignored")
