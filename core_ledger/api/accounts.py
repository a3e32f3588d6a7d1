"""
Account holder endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from .auth import get_ledger, require_account_holder
from .schemas import (
    AccountModel, AmountRequest, ChangePinRequest, CreateAccountRequest,
    TransactionListModel, TransactionModel, TransferRequest,
    TransferResultModel, parse_amount
)
from ..accounts import Account, AccountType
from ..ledger import Ledger


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=AccountModel)
def create_account(request: CreateAccountRequest, ledger: Ledger = Depends(get_ledger)):
    """Open a new account"""
    account = ledger.create_account(
        owner=request.owner,
        account_type=AccountType(request.account_type),
        pin=request.pin,
        opening_deposit=parse_amount(request.opening_deposit)
    )
    return AccountModel.from_account(account)


@router.get("/{account_number}", response_model=AccountModel)
def get_account(account: Account = Depends(require_account_holder)):
    """Get account details"""
    return AccountModel.from_account(account)


@router.get("/{account_number}/transactions", response_model=TransactionListModel)
def get_transactions(
    limit: int = Query(10, ge=1, le=1000),
    account: Account = Depends(require_account_holder)
):
    """Most recent transactions, oldest first"""
    return TransactionListModel(
        transactions=[TransactionModel.from_transaction(t) for t in account.last_n(limit)]
    )


@router.get("/{account_number}/statement.csv", response_class=PlainTextResponse)
def get_statement(account: Account = Depends(require_account_holder)):
    """Full transaction history as CSV"""
    return PlainTextResponse(content=account.to_csv(), media_type="text/csv")


@router.post("/{account_number}/deposit", response_model=TransactionModel)
def deposit(
    request: AmountRequest,
    account: Account = Depends(require_account_holder),
    ledger: Ledger = Depends(get_ledger)
):
    transaction = ledger.deposit(account.account_number, parse_amount(request.amount), request.narration)
    return TransactionModel.from_transaction(transaction)


@router.post("/{account_number}/withdraw", response_model=TransactionModel)
def withdraw(
    request: AmountRequest,
    account: Account = Depends(require_account_holder),
    ledger: Ledger = Depends(get_ledger)
):
    transaction = ledger.withdraw(account.account_number, parse_amount(request.amount), request.narration)
    return TransactionModel.from_transaction(transaction)


@router.post("/{account_number}/transfer", response_model=TransferResultModel)
def transfer(
    request: TransferRequest,
    account: Account = Depends(require_account_holder),
    ledger: Ledger = Depends(get_ledger)
):
    debit, credit = ledger.transfer(
        account.account_number,
        request.to_account_number,
        parse_amount(request.amount),
        request.narration
    )
    return TransferResultModel(
        debit=TransactionModel.from_transaction(debit),
        credit=TransactionModel.from_transaction(credit)
    )


@router.put("/{account_number}/pin")
def change_pin(
    request: ChangePinRequest,
    account: Account = Depends(require_account_holder),
    ledger: Ledger = Depends(get_ledger)
):
    ledger.change_pin(account.account_number, request.current_pin, request.new_pin)
    return {"message": "PIN changed"}
