"""
Authentication and authorization dependencies
"""

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..accounts import Account
from ..ledger import Ledger

basic_auth = HTTPBasic()


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


def require_account_holder(
    account_number: int,
    x_account_pin: str = Header(..., description="Account PIN"),
    ledger: Ledger = Depends(get_ledger)
) -> Account:
    """Resolve the path account and check the PIN header against it"""
    if not ledger.verify_pin(account_number, x_account_pin):
        # Same answer for unknown accounts and wrong PINs
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_credentials", "message": "Invalid account number or PIN"}
        )
    return ledger.get_account(account_number)


def require_admin(
    credentials: HTTPBasicCredentials = Depends(basic_auth),
    ledger: Ledger = Depends(get_ledger)
) -> str:
    if not ledger.verify_admin(credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_credentials", "message": "Invalid admin credentials"},
            headers={"WWW-Authenticate": "Basic"}
        )
    return credentials.username
