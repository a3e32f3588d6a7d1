"""
Ledger Error Taxonomy

Domain errors are caller-recoverable and derive from LedgerError (itself a
ValueError, so callers that catch ValueError for rejected input keep
working). Persistence and credential failures are separate hierarchies so
they are never mistaken for domain outcomes such as "account not found".
"""


class LedgerError(ValueError):
    """Base class for all domain errors raised by ledger operations"""

    code = "ledger_error"
    default_message = "Ledger operation rejected"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class InvalidOwner(LedgerError):
    code = "invalid_owner"
    default_message = "Owner required"


class InvalidPin(LedgerError):
    code = "invalid_pin"
    default_message = "PIN must be 4 digits"


class InvalidCredentials(LedgerError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class BelowMinimumOpening(LedgerError):
    code = "below_minimum_opening"
    default_message = "Opening deposit below minimum"


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    default_message = "Amount must be positive"


class AccountNotFound(LedgerError):
    code = "account_not_found"
    default_message = "Account not found"


class AccountFrozen(LedgerError):
    code = "account_frozen"
    default_message = "Account frozen"


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"
    default_message = "Insufficient funds"


class BelowMinimumBalance(LedgerError):
    code = "below_minimum_balance"
    default_message = "Insufficient funds to maintain minimum balance"


class DailyLimitExceeded(LedgerError):
    code = "daily_limit_exceeded"
    default_message = "Daily withdrawal limit exceeded"


class SameAccount(LedgerError):
    code = "same_account"
    default_message = "Cannot transfer to same account"


class TransactionNotFound(LedgerError):
    code = "transaction_not_found"
    default_message = "Transaction not found"


class NotReversible(LedgerError):
    code = "not_reversible"
    default_message = "Transaction not reversible"


class InsufficientFundsForReversal(LedgerError):
    code = "insufficient_funds_for_reversal"
    default_message = "Cannot reverse deposit due to insufficient balance"


class PersistenceError(Exception):
    """Raised when ledger state cannot be saved or loaded"""


class CorruptStateError(PersistenceError):
    """Raised when stored ledger state is unreadable or inconsistent"""


class CredentialError(Exception):
    """Raised when the credential provider cannot hash or verify a secret"""
