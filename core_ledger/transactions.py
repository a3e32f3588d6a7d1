"""
Transaction Record Module

Immutable records of balance-affecting events. Records are created exactly
once by an Account and appended to its log; the log order is chronological.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum
import uuid

from .money import round_money, format_amount


class TransactionType(Enum):
    """Kinds of balance-affecting events"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def default_narration(self) -> str:
        return self.value.capitalize()


def new_transaction_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Transaction:
    """
    One immutable ledger event

    amount and balance_after are rounded to 2 places on construction so every
    stored value is already in its final form. reversal_of is set only on
    compensating transactions created by a reversal.
    """
    transaction_type: TransactionType
    amount: Decimal
    balance_after: Decimal
    timestamp: datetime
    narration: str = ""
    id: str = field(default_factory=new_transaction_id)
    reversal_of: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'amount', round_money(self.amount))
        object.__setattr__(self, 'balance_after', round_money(self.balance_after))

        if self.amount <= Decimal('0'):
            raise ValueError("Transaction amount must be positive")

        if not self.narration or not self.narration.strip():
            object.__setattr__(self, 'narration', self.transaction_type.default_narration)

    @property
    def is_deposit(self) -> bool:
        return self.transaction_type == TransactionType.DEPOSIT

    @property
    def is_withdrawal(self) -> bool:
        return self.transaction_type == TransactionType.WITHDRAWAL

    @property
    def is_reversal(self) -> bool:
        """Check if this transaction compensates an earlier one"""
        return self.reversal_of is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary for storage"""
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'transaction_type': self.transaction_type.value,
            'amount': format_amount(self.amount),
            'balance_after': format_amount(self.balance_after),
            'narration': self.narration,
            'reversal_of': self.reversal_of,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from a dictionary produced by to_dict"""
        return cls(
            id=data['id'],
            timestamp=datetime.fromisoformat(data['timestamp']),
            transaction_type=TransactionType(data['transaction_type']),
            amount=Decimal(data['amount']),
            balance_after=Decimal(data['balance_after']),
            narration=data.get('narration') or "",
            reversal_of=data.get('reversal_of'),
        )
