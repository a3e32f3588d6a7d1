"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from ..accounts import Account
from ..exceptions import InvalidAmount
from ..money import decimal_from_string, format_amount
from ..transactions import Transaction


def parse_amount(value: str) -> Decimal:
    """Parse a user-supplied amount string, mapping bad input to InvalidAmount"""
    try:
        return decimal_from_string(value)
    except ValueError as e:
        raise InvalidAmount(str(e)) from e


class TransactionModel(BaseModel):
    id: str
    timestamp: str
    transaction_type: str
    amount: str = Field(..., description="Decimal amount as string")
    balance_after: str
    narration: str
    reversal_of: Optional[str] = None

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionModel':
        return cls(
            id=transaction.id,
            timestamp=transaction.timestamp.isoformat(),
            transaction_type=transaction.transaction_type.value,
            amount=format_amount(transaction.amount),
            balance_after=format_amount(transaction.balance_after),
            narration=transaction.narration,
            reversal_of=transaction.reversal_of
        )


class AccountModel(BaseModel):
    account_number: int
    owner_name: str
    account_type: str
    balance: str
    active: bool
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> 'AccountModel':
        return cls(
            account_number=account.account_number,
            owner_name=account.owner_name,
            account_type=account.account_type.value,
            balance=format_amount(account.balance),
            active=account.active,
            created_at=account.created_at.isoformat()
        )


class TransactionListModel(BaseModel):
    transactions: List[TransactionModel]


class TransferResultModel(BaseModel):
    debit: TransactionModel
    credit: TransactionModel


class SummaryModel(BaseModel):
    total_accounts: int
    active_accounts: int
    total_balances: str


# Account holder requests
class CreateAccountRequest(BaseModel):
    owner: str
    account_type: Literal["savings", "current"]
    pin: str = Field(..., description="4-digit PIN")
    opening_deposit: str = Field(..., description="Decimal amount as string")


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    narration: Optional[str] = None


class TransferRequest(BaseModel):
    to_account_number: int
    amount: str = Field(..., description="Decimal amount as string")
    narration: Optional[str] = None


class ReverseRequest(BaseModel):
    transaction_id: str


class ChangePinRequest(BaseModel):
    current_pin: str
    new_pin: str


# Admin requests
class AdminPasswordRequest(BaseModel):
    password: str = Field(..., min_length=1)
