"""
Account Module

An Account holds a balance and an append-only transaction log guarded by its
own re-entrant lock. The deposit/withdraw primitives here only enforce local
sufficiency; policy (minimum balance, daily limit, frozen state) belongs to
the Ledger, which evaluates it while holding the same lock.
"""

from decimal import Decimal
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from enum import Enum
import threading

from .clock import Clock, local_now, local_date
from .exceptions import InsufficientFunds
from .money import AmountLike, ZERO, round_money, format_amount
from .transactions import Transaction, TransactionType

CSV_HEADER = "txId,timestamp,type,amount,balanceAfter,narration"


class AccountType(Enum):
    """Account products; each has its own minimum balance policy"""
    SAVINGS = "savings"
    CURRENT = "current"


def _quote_csv(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


class Account:
    """
    Balance-holding entity with an append-only transaction log

    Every read and write of balance/log happens under self.lock. The lock is
    re-entrant so the Ledger can hold it across a policy check and the
    primitive that follows.
    """

    def __init__(
        self,
        account_number: int,
        owner_name: str,
        account_type: AccountType,
        pin_hash: str,
        pin_salt: str,
        created_at: Optional[datetime] = None,
        active: bool = True,
        clock: Optional[Clock] = None
    ):
        self._account_number = account_number
        self._owner_name = owner_name
        self._account_type = account_type
        self._pin_hash = pin_hash
        self._pin_salt = pin_salt
        self._active = active
        self._clock = clock or local_now
        self._created_at = created_at or self._clock()
        self._balance = ZERO
        self._transactions: List[Transaction] = []
        self.lock = threading.RLock()

    def __repr__(self) -> str:
        return (f"Account(account_number={self._account_number}, "
                f"owner_name={self._owner_name!r}, "
                f"account_type={self._account_type.value}, balance={self.balance})")

    # Identity (immutable after creation)

    @property
    def account_number(self) -> int:
        return self._account_number

    @property
    def owner_name(self) -> str:
        return self._owner_name

    @property
    def account_type(self) -> AccountType:
        return self._account_type

    @property
    def created_at(self) -> datetime:
        return self._created_at

    # Mutable state

    @property
    def balance(self) -> Decimal:
        with self.lock:
            return self._balance

    @property
    def active(self) -> bool:
        with self.lock:
            return self._active

    def set_active(self, active: bool) -> None:
        with self.lock:
            self._active = active

    @property
    def pin_hash(self) -> str:
        with self.lock:
            return self._pin_hash

    @property
    def pin_salt(self) -> str:
        with self.lock:
            return self._pin_salt

    def credential(self) -> Tuple[str, str]:
        """(pin_hash, pin_salt) read together so a concurrent set_pin is never half-seen"""
        with self.lock:
            return self._pin_hash, self._pin_salt

    def set_pin(self, pin_hash: str, pin_salt: str) -> None:
        """Replace the stored credential material"""
        with self.lock:
            self._pin_hash = pin_hash
            self._pin_salt = pin_salt

    @property
    def transactions(self) -> List[Transaction]:
        """Copy of the full log in chronological order"""
        with self.lock:
            return list(self._transactions)

    @property
    def transaction_count(self) -> int:
        with self.lock:
            return len(self._transactions)

    # Primitives

    def deposit(
        self,
        amount: AmountLike,
        narration: Optional[str] = None,
        reversal_of: Optional[str] = None
    ) -> Transaction:
        """
        Add amount to the balance and append a DEPOSIT record

        The caller is responsible for ensuring amount rounds to a positive
        value.
        """
        amount = round_money(amount)
        with self.lock:
            new_balance = round_money(self._balance + amount)
            transaction = Transaction(
                transaction_type=TransactionType.DEPOSIT,
                amount=amount,
                balance_after=new_balance,
                timestamp=self._clock(),
                narration=narration or "",
                reversal_of=reversal_of
            )
            self._transactions.append(transaction)
            self._balance = new_balance
            return transaction

    def withdraw(
        self,
        amount: AmountLike,
        narration: Optional[str] = None,
        reversal_of: Optional[str] = None
    ) -> Transaction:
        """
        Subtract amount from the balance and append a WITHDRAWAL record

        Raises:
            InsufficientFunds: If the rounded amount exceeds the balance
        """
        amount = round_money(amount)
        with self.lock:
            if amount > self._balance:
                raise InsufficientFunds()
            new_balance = round_money(self._balance - amount)
            transaction = Transaction(
                transaction_type=TransactionType.WITHDRAWAL,
                amount=amount,
                balance_after=new_balance,
                timestamp=self._clock(),
                narration=narration or "",
                reversal_of=reversal_of
            )
            self._transactions.append(transaction)
            self._balance = new_balance
            return transaction

    # Log queries

    def withdrawn_today(self) -> Decimal:
        """
        Sum of WITHDRAWAL amounts in the current local calendar day

        Recomputed from the full log on every call so the total resets by
        itself when the clock crosses midnight.
        """
        with self.lock:
            today = local_date(self._clock())
            total = ZERO
            for transaction in self._transactions:
                if transaction.is_withdrawal and local_date(transaction.timestamp) == today:
                    total += transaction.amount
            return round_money(total)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Linear lookup by id; None when absent"""
        with self.lock:
            for transaction in self._transactions:
                if transaction.id == transaction_id:
                    return transaction
            return None

    def is_reversed(self, transaction_id: str) -> bool:
        """Check if a compensating transaction already exists for transaction_id"""
        with self.lock:
            return any(t.reversal_of == transaction_id for t in self._transactions)

    def last_n(self, n: int) -> List[Transaction]:
        """Most recent min(n, count) transactions, oldest first"""
        with self.lock:
            if n <= 0:
                return []
            return list(self._transactions[-n:])

    # Export

    def to_csv(self) -> str:
        """Render the full log as CSV text"""
        lines = [CSV_HEADER]
        for t in self.transactions:
            lines.append(",".join([
                t.id,
                t.timestamp.isoformat(),
                t.transaction_type.name,
                format_amount(t.amount),
                format_amount(t.balance_after),
                _quote_csv(t.narration),
            ]))
        return "\n".join(lines) + "\n"

    def export_csv(self, destination: Union[str, Path]) -> Path:
        """Write the CSV statement to destination and return its path"""
        path = Path(destination)
        path.write_text(self.to_csv(), encoding="utf-8")
        return path

    # Persistence

    def snapshot(self) -> Dict[str, Any]:
        """Consistent JSON-compatible copy of this account, taken under its lock"""
        with self.lock:
            return {
                'account_number': self._account_number,
                'owner_name': self._owner_name,
                'account_type': self._account_type.value,
                'balance': format_amount(self._balance),
                'pin_hash': self._pin_hash,
                'pin_salt': self._pin_salt,
                'active': self._active,
                'created_at': self._created_at.isoformat(),
                'transactions': [t.to_dict() for t in self._transactions],
            }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], clock: Optional[Clock] = None) -> 'Account':
        """
        Rebuild an account from snapshot()

        Raises:
            ValueError: If the stored balance disagrees with the log
        """
        account = cls(
            account_number=int(data['account_number']),
            owner_name=data['owner_name'],
            account_type=AccountType(data['account_type']),
            pin_hash=data['pin_hash'],
            pin_salt=data['pin_salt'],
            created_at=datetime.fromisoformat(data['created_at']),
            active=bool(data.get('active', True)),
            clock=clock
        )
        transactions = [Transaction.from_dict(t) for t in data.get('transactions', [])]
        balance = transactions[-1].balance_after if transactions else ZERO

        if 'balance' in data and round_money(data['balance']) != balance:
            raise ValueError(
                f"Account {account.account_number}: stored balance {data['balance']} "
                f"does not match last transaction ({format_amount(balance)})"
            )

        account._transactions = transactions
        account._balance = balance
        return account
