"""
Admin endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from .auth import get_ledger, require_admin
from .schemas import (
    AccountModel, AdminPasswordRequest, ReverseRequest, SummaryModel, TransactionModel
)
from ..ledger import Ledger
from ..money import format_amount


router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/accounts", response_model=List[AccountModel])
def list_accounts(owner: Optional[str] = None, ledger: Ledger = Depends(get_ledger)):
    """List all accounts, optionally filtered by owner name substring"""
    accounts = ledger.search_by_owner(owner) if owner else ledger.list_accounts()
    return [AccountModel.from_account(a) for a in accounts]


@router.get("/summary", response_model=SummaryModel)
def summary(ledger: Ledger = Depends(get_ledger)):
    return SummaryModel(
        total_accounts=ledger.total_accounts(),
        active_accounts=ledger.count_active_accounts(),
        total_balances=format_amount(ledger.total_balances())
    )


@router.post("/accounts/{account_number}/freeze", response_model=AccountModel)
def freeze(account_number: int, ledger: Ledger = Depends(get_ledger)):
    return AccountModel.from_account(ledger.freeze_account(account_number))


@router.post("/accounts/{account_number}/unfreeze", response_model=AccountModel)
def unfreeze(account_number: int, ledger: Ledger = Depends(get_ledger)):
    return AccountModel.from_account(ledger.unfreeze_account(account_number))


@router.post("/accounts/{account_number}/reverse", response_model=TransactionModel)
def reverse(account_number: int, request: ReverseRequest, ledger: Ledger = Depends(get_ledger)):
    """Reverse a deposit or withdrawal on any account"""
    reversal = ledger.reverse_transaction(account_number, request.transaction_id)
    return TransactionModel.from_transaction(reversal)


@router.put("/password")
def set_password(request: AdminPasswordRequest, ledger: Ledger = Depends(get_ledger)):
    ledger.set_admin_password(request.password)
    return {"message": "Admin password changed"}
