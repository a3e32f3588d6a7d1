"""
Ledger Engine

Owns the account registry and every operation that spans accounts or applies
policy: account creation, deposits and withdrawals with minimum-balance and
daily-limit checks, transfers, reversals, reporting and admin credentials.

Locking protocol:
    - Each Account has its own re-entrant lock; policy checks and the
      mutation they guard run under that one lock.
    - self._lock (Ledger-wide) guards the registry and the account-number
      counter. It is never acquired while an account lock is held.
    - Operations that hold several account locks (transfer, export_state)
      acquire them in ascending account-number order, so two transfers
      between the same pair can never wait on each other in a cycle.
"""

from contextlib import ExitStack, contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
import re
import threading

from .accounts import Account, AccountType
from .clock import Clock, local_now
from .config import LedgerConfig, get_config
from .credentials import CredentialProvider, PBKDF2CredentialProvider, decode_salt, encode_salt
from .exceptions import (
    LedgerError, InvalidOwner, InvalidPin, InvalidCredentials, BelowMinimumOpening,
    InvalidAmount, AccountNotFound, AccountFrozen, BelowMinimumBalance,
    DailyLimitExceeded, SameAccount, TransactionNotFound, NotReversible,
    InsufficientFundsForReversal, CorruptStateError
)
from .logging_config import get_logger, log_action
from .money import AmountLike, ZERO, round_money, format_amount
from .transactions import Transaction

PIN_PATTERN = re.compile(r"[0-9]{4}")
STATE_VERSION = 1


class Ledger:
    """
    Concurrency-safe registry of accounts

    All public methods may be called from many threads at once.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
        admin_credential: Optional[Tuple[str, str]] = None
    ):
        """
        admin_credential is an existing (password_hash, password_salt) pair;
        without one the configured default admin password is hashed.
        """
        if credentials is None:
            raise ValueError("CredentialProvider required")

        config = config or get_config()
        self._credentials = credentials
        self._clock = clock or local_now
        self._lock = threading.Lock()
        self._accounts: Dict[int, Account] = {}
        self._next_account_number = config.account_number_base

        self._min_opening_deposit = round_money(config.min_opening_deposit)
        self._minimum_balances = {
            AccountType.SAVINGS: round_money(config.min_balance_savings),
            AccountType.CURRENT: round_money(config.min_balance_current),
        }
        self._daily_withdrawal_limit = round_money(config.daily_withdrawal_limit)

        self._admin_user = config.admin_user
        self._default_admin_password = config.admin_default_password
        if admin_credential is None:
            admin_credential = self._hash_secret(self._default_admin_password)
        self._admin_password_hash, self._admin_password_salt = admin_credential

        self.logger = get_logger("core_ledger.ledger")

    # Policy values

    @property
    def min_opening_deposit(self) -> Decimal:
        return self._min_opening_deposit

    @property
    def daily_withdrawal_limit(self) -> Decimal:
        return self._daily_withdrawal_limit

    def minimum_balance_for(self, account_type: AccountType) -> Decimal:
        return self._minimum_balances[AccountType(account_type)]

    # Account lifecycle

    def create_account(
        self,
        owner: str,
        account_type: Union[AccountType, str],
        pin: str,
        opening_deposit: AmountLike
    ) -> Account:
        """
        Open a new account

        The account number is allocated only once every check has passed, so
        rejected attempts never consume a number.

        Raises:
            InvalidOwner: owner is empty or blank
            InvalidPin: pin is not exactly 4 digits
            BelowMinimumOpening: opening_deposit is below the configured minimum
        """
        with self._rejections("create_account", "account:new"):
            owner_name = (owner or "").strip()
            if not owner_name:
                raise InvalidOwner()
            self._validate_pin_format(pin)
            account_type = AccountType(account_type)

            try:
                opening = round_money(opening_deposit)
            except ValueError as e:
                raise InvalidAmount(str(e)) from e
            if opening < self._min_opening_deposit:
                raise BelowMinimumOpening(
                    f"Opening deposit below minimum of {format_amount(self._min_opening_deposit)}"
                )

            pin_hash, pin_salt = self._hash_secret(pin)

            with self._lock:
                account_number = self._next_account_number
                account = Account(
                    account_number=account_number,
                    owner_name=owner_name,
                    account_type=account_type,
                    pin_hash=pin_hash,
                    pin_salt=pin_salt,
                    clock=self._clock
                )
                if opening > ZERO:
                    account.deposit(opening, "Opening deposit")
                self._accounts[account_number] = account
                self._next_account_number += 1

        log_action(
            self.logger, "info", f"Account created: {account_number}",
            action="create_account", resource=f"account:{account_number}",
            extra={
                "account_type": account_type.value,
                "opening_deposit": format_amount(opening)
            }
        )
        return account

    def get_account(self, account_number: int) -> Optional[Account]:
        """Get account by number, None when absent"""
        with self._lock:
            return self._accounts.get(account_number)

    def verify_pin(self, account_number: int, pin: str) -> bool:
        """Check an account holder's PIN; False for unknown accounts"""
        account = self.get_account(account_number)
        if account is None or pin is None:
            return False
        pin_hash, pin_salt = account.credential()
        return self._credentials.verify(pin, pin_hash, decode_salt(pin_salt))

    def change_pin(self, account_number: int, current_pin: str, new_pin: str) -> None:
        """
        Replace an account's PIN after verifying the current one

        Raises:
            AccountNotFound: unknown account
            InvalidCredentials: current_pin is wrong
            InvalidPin: new_pin is not exactly 4 digits
        """
        with self._rejections("change_pin", f"account:{account_number}"):
            account = self._require_account(account_number)
            self._validate_pin_format(new_pin)
            if not self.verify_pin(account_number, current_pin):
                raise InvalidCredentials("Wrong PIN")
            pin_hash, pin_salt = self._hash_secret(new_pin)
            account.set_pin(pin_hash, pin_salt)

        log_action(
            self.logger, "info", f"PIN changed for account {account_number}",
            action="change_pin", resource=f"account:{account_number}"
        )

    def set_active(self, account_number: int, active: bool) -> Account:
        """Freeze (active=False) or unfreeze an account"""
        with self._rejections("set_active", f"account:{account_number}"):
            account = self._require_account(account_number)
        account.set_active(active)

        log_action(
            self.logger, "info",
            f"Account {account_number} {'unfrozen' if active else 'frozen'}",
            action="unfreeze_account" if active else "freeze_account",
            resource=f"account:{account_number}"
        )
        return account

    def freeze_account(self, account_number: int) -> Account:
        return self.set_active(account_number, False)

    def unfreeze_account(self, account_number: int) -> Account:
        return self.set_active(account_number, True)

    # Money movement

    def deposit(
        self,
        account_number: int,
        amount: AmountLike,
        narration: Optional[str] = None
    ) -> Transaction:
        """
        Credit an account

        Raises:
            InvalidAmount, AccountNotFound, AccountFrozen
        """
        with self._rejections("deposit", f"account:{account_number}"):
            amount = self._validate_amount(amount)
            account = self._require_account(account_number)
            with account.lock:
                self._require_active(account)
                transaction = account.deposit(amount, narration)

        self._log_transaction("deposit", account_number, transaction)
        return transaction

    def withdraw(
        self,
        account_number: int,
        amount: AmountLike,
        narration: Optional[str] = None
    ) -> Transaction:
        """
        Debit an account after applying withdrawal policy

        The daily-limit and minimum-balance checks read the pre-withdrawal
        state under the same lock as the debit, so nothing can interleave
        between check and act.

        Raises:
            InvalidAmount, AccountNotFound, AccountFrozen,
            DailyLimitExceeded, BelowMinimumBalance
        """
        with self._rejections("withdraw", f"account:{account_number}"):
            amount = self._validate_amount(amount)
            account = self._require_account(account_number)
            with account.lock:
                self._require_active(account)
                self._check_withdrawal_policy(account, amount)
                transaction = account.withdraw(amount, narration)

        self._log_transaction("withdraw", account_number, transaction)
        return transaction

    def transfer(
        self,
        from_account_number: int,
        to_account_number: int,
        amount: AmountLike,
        narration: Optional[str] = None
    ) -> Tuple[Transaction, Transaction]:
        """
        Move amount between two accounts as one atomic unit

        Returns:
            (debit, credit) transactions

        Raises:
            InvalidAmount, SameAccount, AccountNotFound, AccountFrozen,
            DailyLimitExceeded, BelowMinimumBalance
        """
        resource = f"account:{from_account_number}->account:{to_account_number}"
        with self._rejections("transfer", resource):
            amount = self._validate_amount(amount)
            if from_account_number == to_account_number:
                raise SameAccount()
            source = self._require_account(from_account_number)
            target = self._require_account(to_account_number)
            if not source.active or not target.active:
                raise AccountFrozen("One of the accounts is frozen")

            suffix = f" | {narration}" if narration else ""
            with self._lock_accounts(source, target):
                # Authoritative checks: state cannot change until we release
                if not source.active or not target.active:
                    raise AccountFrozen("One of the accounts is frozen")
                self._check_withdrawal_policy(source, amount)
                debit = source.withdraw(amount, f"Transfer to {to_account_number}{suffix}")
                credit = target.deposit(amount, f"Transfer from {from_account_number}{suffix}")

        log_action(
            self.logger, "info", f"Transfer completed: {format_amount(amount)}",
            action="transfer", resource=resource,
            extra={
                "amount": format_amount(amount),
                "debit_transaction_id": debit.id,
                "credit_transaction_id": credit.id
            }
        )
        return debit, credit

    def reverse_transaction(self, account_number: int, transaction_id: str) -> Transaction:
        """
        Append a compensating transaction for a prior deposit or withdrawal

        Validity is judged against the account's current balance, not the
        balance at the time of the original. Compensating transactions and
        transactions that were already reversed are rejected.

        Raises:
            AccountNotFound, TransactionNotFound, NotReversible,
            InsufficientFundsForReversal
        """
        with self._rejections("reverse_transaction", f"account:{account_number}"):
            account = self._require_account(account_number)
            with account.lock:
                original = account.find_transaction(transaction_id)
                if original is None:
                    raise TransactionNotFound()
                if original.is_reversal:
                    raise NotReversible("Reversal transactions cannot be reversed")
                if account.is_reversed(transaction_id):
                    raise NotReversible(f"Transaction {transaction_id} already reversed")

                narration = f"Reversal of {transaction_id}"
                if original.is_deposit:
                    if account.balance < original.amount:
                        raise InsufficientFundsForReversal()
                    reversal = account.withdraw(original.amount, narration, reversal_of=transaction_id)
                elif original.is_withdrawal:
                    reversal = account.deposit(original.amount, narration, reversal_of=transaction_id)
                else:
                    raise NotReversible("Only simple deposits/withdrawals reversible")

        self._log_transaction("reverse_transaction", account_number, reversal)
        return reversal

    # Queries

    def list_accounts(self) -> List[Account]:
        """Snapshot list of account handles in creation order"""
        with self._lock:
            return list(self._accounts.values())

    def search_by_owner(self, query: Optional[str]) -> List[Account]:
        """Case-insensitive substring match on owner name"""
        needle = (query or "").lower()
        return [a for a in self.list_accounts() if needle in a.owner_name.lower()]

    def total_accounts(self) -> int:
        with self._lock:
            return len(self._accounts)

    def total_balances(self) -> Decimal:
        """Sum of current balances; each balance is read under its own lock"""
        return round_money(sum((a.balance for a in self.list_accounts()), ZERO))

    def count_active_accounts(self) -> int:
        return sum(1 for a in self.list_accounts() if a.active)

    # Admin credentials

    def verify_admin(self, user: Optional[str], password: Optional[str]) -> bool:
        if user is None or password is None:
            return False
        with self._lock:
            admin_user = self._admin_user
            password_hash = self._admin_password_hash
            password_salt = self._admin_password_salt
        if user != admin_user:
            return False
        return self._credentials.verify(password, password_hash, decode_salt(password_salt))

    def set_admin_password(self, password: Optional[str]) -> None:
        """Regenerate salt and hash; None restores the configured default"""
        if password is None:
            password = self._default_admin_password
        password_hash, password_salt = self._hash_secret(password)
        with self._lock:
            self._admin_password_hash = password_hash
            self._admin_password_salt = password_salt

        log_action(
            self.logger, "info", "Admin password changed",
            action="set_admin_password", resource="admin"
        )

    # State export / import

    def export_state(self) -> Dict[str, Any]:
        """
        Consistent JSON-compatible snapshot of the whole ledger

        Holds the Ledger-wide lock and every account lock (ascending) while
        copying, so no transfer can be half-visible in the result.
        """
        with self._lock:
            accounts = list(self._accounts.values())
            with self._lock_accounts(*accounts):
                return {
                    'version': STATE_VERSION,
                    'next_account_number': self._next_account_number,
                    'min_opening_deposit': format_amount(self._min_opening_deposit),
                    'minimum_balances': {
                        t.value: format_amount(v) for t, v in self._minimum_balances.items()
                    },
                    'daily_withdrawal_limit': format_amount(self._daily_withdrawal_limit),
                    'admin': {
                        'user': self._admin_user,
                        'password_hash': self._admin_password_hash,
                        'password_salt': self._admin_password_salt,
                    },
                    'accounts': [a.snapshot() for a in accounts],
                }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        credentials: CredentialProvider,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None
    ) -> 'Ledger':
        """
        Rebuild a ledger from export_state()

        Raises:
            CorruptStateError: If the state is malformed or inconsistent
        """
        if not isinstance(state, dict):
            raise CorruptStateError("Ledger state must be a mapping")
        if state.get('version') != STATE_VERSION:
            raise CorruptStateError(f"Unsupported ledger state version: {state.get('version')!r}")

        try:
            admin = state['admin']
            ledger = cls(
                credentials, config=config, clock=clock,
                admin_credential=(admin['password_hash'], admin['password_salt'])
            )
            ledger._admin_user = admin['user']
            ledger._min_opening_deposit = round_money(state['min_opening_deposit'])
            ledger._minimum_balances = {
                AccountType(k): round_money(v) for k, v in state['minimum_balances'].items()
            }
            ledger._daily_withdrawal_limit = round_money(state['daily_withdrawal_limit'])

            for data in state['accounts']:
                account = Account.from_snapshot(data, clock=ledger._clock)
                if account.account_number in ledger._accounts:
                    raise CorruptStateError(f"Duplicate account number {account.account_number}")
                ledger._accounts[account.account_number] = account

            next_number = int(state['next_account_number'])
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise CorruptStateError(f"Malformed ledger state: {e}") from e

        if set(AccountType) - set(ledger._minimum_balances):
            raise CorruptStateError("Minimum balance missing for an account type")
        if ledger._accounts and next_number <= max(ledger._accounts):
            raise CorruptStateError("Account number counter is behind existing accounts")
        ledger._next_account_number = next_number

        log_action(
            ledger.logger, "info", f"Ledger restored with {len(ledger._accounts)} accounts",
            action="load_state", resource="ledger"
        )
        return ledger

    def save_to(self, store, destination: Optional[str] = None) -> None:
        """Export state and hand it to a StateStore (I/O happens outside all locks)"""
        state = self.export_state()
        store.save(state, destination)
        log_action(
            self.logger, "info", "Ledger state saved",
            action="save_state", resource="ledger",
            extra={"accounts": len(state['accounts'])}
        )

    @classmethod
    def load_from(
        cls,
        store,
        credentials: CredentialProvider,
        source: Optional[str] = None,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None
    ) -> Optional['Ledger']:
        """Load from a StateStore; None when nothing has been saved yet"""
        state = store.load(source)
        if state is None:
            return None
        return cls.from_state(state, credentials, config=config, clock=clock)

    # Internal helpers

    @contextmanager
    def _lock_accounts(self, *accounts: Account) -> Iterator[None]:
        """Acquire account locks in ascending account-number order"""
        with ExitStack() as stack:
            for account in sorted(accounts, key=lambda a: a.account_number):
                stack.enter_context(account.lock)
            yield

    @contextmanager
    def _rejections(self, action: str, resource: str) -> Iterator[None]:
        """Log domain rejections at WARNING and re-raise them unchanged"""
        try:
            yield
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"{action} rejected: {e}",
                action=action, resource=resource, extra={"error": e.code}
            )
            raise

    def _require_account(self, account_number: int) -> Account:
        account = self.get_account(account_number)
        if account is None:
            raise AccountNotFound(f"Account {account_number} not found")
        return account

    @staticmethod
    def _require_active(account: Account) -> None:
        if not account.active:
            raise AccountFrozen(f"Account {account.account_number} is frozen")

    @staticmethod
    def _validate_amount(amount: AmountLike) -> Decimal:
        """Round first so an amount like 0.001 is rejected rather than stored as 0.00"""
        try:
            rounded = round_money(amount)
        except ValueError as e:
            raise InvalidAmount(str(e)) from e
        if rounded <= ZERO:
            raise InvalidAmount()
        return rounded

    @staticmethod
    def _validate_pin_format(pin: str) -> None:
        if not isinstance(pin, str) or not PIN_PATTERN.fullmatch(pin):
            raise InvalidPin()

    def _check_withdrawal_policy(self, account: Account, amount: Decimal) -> None:
        """Caller must hold account.lock"""
        if account.withdrawn_today() + amount > self._daily_withdrawal_limit:
            raise DailyLimitExceeded()
        minimum = self._minimum_balances[account.account_type]
        if account.balance - amount < minimum:
            raise BelowMinimumBalance(
                f"Withdrawal would leave balance below minimum of {format_amount(minimum)}"
            )

    def _hash_secret(self, secret: str) -> Tuple[str, str]:
        salt = self._credentials.generate_salt()
        return self._credentials.hash(secret, salt), encode_salt(salt)

    def _log_transaction(self, action: str, account_number: int, transaction: Transaction) -> None:
        log_action(
            self.logger, "info",
            f"{transaction.transaction_type.value.capitalize()} posted: {format_amount(transaction.amount)}",
            action=action, resource=f"account:{account_number}",
            extra={
                "transaction_id": transaction.id,
                "amount": format_amount(transaction.amount),
                "balance_after": format_amount(transaction.balance_after),
                "reversal_of": transaction.reversal_of
            }
        )


def build_credentials(config: Optional[LedgerConfig] = None) -> PBKDF2CredentialProvider:
    """PBKDF2 provider with the configured work factor"""
    config = config or get_config()
    return PBKDF2CredentialProvider(
        iterations=config.pbkdf2_iterations,
        key_length=config.pbkdf2_key_length
    )


def build_ledger(config: Optional[LedgerConfig] = None, clock: Optional[Clock] = None) -> Ledger:
    """Create an empty ledger wired with the PBKDF2 provider from config"""
    config = config or get_config()
    return Ledger(build_credentials(config), config=config, clock=clock)
